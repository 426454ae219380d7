"""
Thread rendering.

Turns one forum thread into a plain-text block for the model prompt:
header tags, title, question body, a single "Best answer" section and a
short footer. Pure functions, no I/O.
"""

import logging
from typing import Optional, Sequence

from bs4 import BeautifulSoup

from .models import Reply, Thread, ThreadDocument

logger = logging.getLogger(__name__)

NO_ANSWER_PLACEHOLDER = "(No clear answer yet.)"
INSTRUCTOR_ANSWERED_TAG = "[INSTRUCTOR ANSWERED]"
INSTRUCTOR_ANNOUNCEMENT_TAG = "[INSTRUCTOR ANNOUNCEMENT]"


def strip_markup(html: Optional[str]) -> str:
    """Remove markup tags, keeping the text content."""
    if not html:
        return ""
    if "<" not in html:
        return html.strip()
    return BeautifulSoup(html, "html.parser").get_text().strip()


def _first(replies: Sequence[Reply], predicate) -> Optional[Reply]:
    for reply in replies:
        if predicate(reply):
            return reply
    return None


def pick_best_answer(replies: Sequence[Reply]) -> Optional[Reply]:
    """
    Select the reply that best answers the thread.

    Priority (first match wins):
    1. endorsed instructor reply
    2. any instructor reply
    3. endorsed non-instructor reply
    4. first human-written reply
    5. first model-generated reply

    Returns:
        The chosen reply, or None when the thread has no replies.
    """
    chain = (
        lambda r: r.from_instructor and r.endorsed,
        lambda r: r.from_instructor,
        lambda r: not r.from_instructor and r.endorsed,
        lambda r: not r.model_generated,
        lambda r: r.model_generated,
    )
    for predicate in chain:
        best = _first(replies, predicate)
        if best is not None:
            return best
    return None


def render_thread(thread: Thread) -> ThreadDocument:
    """Render a thread and its best answer as a single text block."""
    has_instructor_reply = thread.has_instructor_reply

    header = f"[POST #{thread.id}]"
    if thread.author_is_instructor:
        header += f" {INSTRUCTOR_ANNOUNCEMENT_TAG}"
    if has_instructor_reply:
        header += f" {INSTRUCTOR_ANSWERED_TAG}"

    lines = [
        header,
        f"Title: {thread.title or ''}",
        "",
        "Question/Body:",
        strip_markup(thread.body),
        "",
    ]

    best = pick_best_answer(thread.replies)
    best_text = strip_markup(best.body) if best is not None else ""
    if best is not None and best_text:
        label = "Best answer (FROM INSTRUCTOR):" if best.from_instructor else "Best answer:"
        lines += [label, best_text, ""]
    else:
        lines += ["Best answer:", NO_ANSWER_PLACEHOLDER, ""]

    lines.append("Other context:")
    if thread.created_at is not None:
        lines.append(f"- Created at: {thread.created_at.isoformat()}")
    if thread.course_code or thread.course_name:
        course = " ".join(p for p in (thread.course_code, thread.course_name) if p)
        lines.append(f"- Course: {course}")

    logger.debug(
        f"Rendered post #{thread.id} '{thread.title}' - has instructor reply: {has_instructor_reply}"
    )

    return ThreadDocument(
        thread_id=thread.id,
        text="\n".join(lines) + "\n",
        has_instructor_reply=has_instructor_reply,
    )
