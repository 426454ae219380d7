"""
Forum post API routes.

Model-generated replies: the thread's question is answered with course
documents and forum context, and stored as an unreviewed reply.
"""

import logging

from fastapi import APIRouter, Depends
from supabase import Client

from app.dependencies import (
    get_course_service,
    get_question_service,
    get_service_db,
    get_thread_service,
)
from app.exceptions import NotFoundError
from app.schemas.llm import LlmReplyResponse
from app.services.db.courses import CourseService
from app.services.db.threads import ThreadService
from app.services.forum_qa.service import QuestionAnsweringService
from app.services.forum_qa.thread_renderer import strip_markup

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/posts", tags=["posts"])


def question_for_thread(title: str, body: str) -> str:
    """Question text sent for a forum post: title, blank line, plain body."""
    parts = [p for p in ((title or "").strip(), strip_markup(body)) if p]
    return "\n\n".join(parts)


@router.post("/{post_id}/llm-reply", response_model=LlmReplyResponse)
async def create_llm_reply(
    post_id: int,
    threads: ThreadService = Depends(get_thread_service),
    courses: CourseService = Depends(get_course_service),
    service: QuestionAnsweringService = Depends(get_question_service),
    service_db: Client = Depends(get_service_db),
):
    """
    Generate a reply for a forum post.

    The reply has no author, is not an instructor reply and awaits review.
    """
    thread = threads.get_thread(post_id)
    if thread is None:
        raise NotFoundError("Post")

    course = courses.get_course(thread.course_id)
    answer = await service.answer(
        thread.course_id,
        CourseService.display_name(course),
        course.get("file_search_store_id"),
        question_for_thread(thread.title, thread.body),
        log_tag=f"post={post_id}",
        exclude_thread_id=post_id,
    )

    stored = ThreadService(service_db).insert_llm_reply(post_id, answer)
    logger.info(f"Model reply generated for post {post_id}", extra={"course_id": thread.course_id})

    return LlmReplyResponse(
        reply_id=stored.get("id"),
        post_id=post_id,
        body=answer,
    )
