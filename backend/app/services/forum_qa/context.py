"""Context merging and duplicate-question detection."""

from typing import Optional, Sequence, Tuple

from .models import Thread


def merge_context(
    authority: Sequence[Thread],
    keyword: Sequence[Thread],
) -> Tuple[Thread, ...]:
    """
    Merge the two ranked lists into one duplicate-free context.

    Authority threads come first in their own order, followed by keyword
    threads not already present. Identity is the thread id.
    """
    seen = set()
    merged = []
    for thread in (*authority, *keyword):
        if thread.id in seen:
            continue
        seen.add(thread.id)
        merged.append(thread)
    return tuple(merged)


def duplicate_of(keyword: Sequence[Thread]) -> Optional[Thread]:
    """The head of the keyword list when it already has an answer."""
    if not keyword:
        return None
    head = keyword[0]
    return head if head.has_replies else None


def duplicate_notice(keyword: Sequence[Thread]) -> str:
    """Notice prepended to the answer when the question was asked before."""
    head = duplicate_of(keyword)
    if head is None:
        return ""
    return (
        f"\n\n**NOTE:** A very similar question was previously asked in "
        f"Post #{head.id}: \"{head.title or ''}\"\n\n"
    )
