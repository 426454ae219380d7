"""
Course Q&A API routes.

Chat-style questions about a course, answered from the course documents and
its forum history. A non-streaming JSON endpoint and an SSE endpoint.
"""

import json
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from app.dependencies import get_course_service, get_question_service
from app.exception_handlers import ai_error_to_app_exception
from app.exceptions import ValidationError
from app.schemas.llm import CourseChatRequest, CourseChatResponse
from app.services.db.courses import CourseService
from app.services.errors import AIServiceError
from app.services.forum_qa.service import QuestionAnsweringService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/llm", tags=["llm"])


def _to_response(result) -> CourseChatResponse:
    return CourseChatResponse(
        answer=result.text,
        citations=result.citations,
        context_thread_ids=result.context_thread_ids,
        duplicate_of=result.duplicate_of,
    )


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


@router.post("/courses/{course_id}/chat", response_model=CourseChatResponse)
async def course_chat(
    course_id: int,
    chat_request: CourseChatRequest,
    courses: CourseService = Depends(get_course_service),
    service: QuestionAnsweringService = Depends(get_question_service),
):
    """
    Answer a student question about a course.

    Errors:
    - 404 NOT_FOUND: unknown course
    - 503 GENERATION_UNAVAILABLE: model kept failing transiently
    - 502 EXTERNAL_SERVICE_ERROR: model rejected the request
    """
    question = chat_request.message.strip()
    if not question:
        raise ValidationError("Message must not be empty")

    course = courses.get_course(course_id)
    result = await service.answer_detailed(
        course_id,
        CourseService.display_name(course),
        course.get("file_search_store_id"),
        question,
        log_tag=f"chat course={course_id}",
    )
    return _to_response(result)


async def _sse_generator(
    service: QuestionAnsweringService,
    course: dict,
    question: str,
) -> AsyncGenerator[str, None]:
    """SSE event generator: one answer event, then done (or error)."""
    try:
        result = await service.answer_detailed(
            course["id"],
            CourseService.display_name(course),
            course.get("file_search_store_id"),
            question,
            log_tag=f"stream course={course['id']}",
        )
    except AIServiceError as e:
        mapped = ai_error_to_app_exception(e)
        logger.error(f"SSE stream error: {e}", extra={"course_id": course["id"]})
        yield _sse("error", {"message": mapped.message, "error_code": mapped.error_code})
        return

    yield _sse("answer", _to_response(result).model_dump())
    yield _sse("done", {})


@router.get("/courses/{course_id}/stream")
async def course_chat_stream(
    course_id: int,
    message: str = Query(..., min_length=1, max_length=4000),
    courses: CourseService = Depends(get_course_service),
    service: QuestionAnsweringService = Depends(get_question_service),
):
    """
    Streaming variant of the course chat.

    SSE event types:
    - answer: the attributed answer (same shape as the JSON endpoint)
    - done: finished
    - error: generation failed
    """
    question = message.strip()
    if not question:
        raise ValidationError("Message must not be empty")

    course = courses.get_course(course_id)

    return StreamingResponse(
        _sse_generator(service, course, question),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
