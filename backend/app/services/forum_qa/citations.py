"""
Citation resolution.

Maps grounding fragments returned by the model back to the course resources
they came from, and renders the canonical "Sources:" footer.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence

from .models import GroundingFragment, Resource

logger = logging.getLogger(__name__)

MAX_FRAGMENT_CHARS = 400
DEDUP_KEY_CHARS = 200

FORUM_SOURCE_LINE = "- Forum: course forum threads (see instructor/admin posts above)"
GENERAL_KNOWLEDGE_LINE = (
    "- General knowledge only (no course documents or forum threads were used)"
)

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_SOURCES_RE = re.compile(r"(?:^|\n)[ \t>#*_]*Sources:.*\Z", re.DOTALL)


def normalize_whitespace(text: Optional[str]) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def normalize_fragment(text: Optional[str]) -> str:
    """Collapse whitespace and truncate to MAX_FRAGMENT_CHARS."""
    return normalize_whitespace(text)[:MAX_FRAGMENT_CHARS]


def unique_fragments(fragments: Iterable[GroundingFragment]) -> List[str]:
    """
    Normalized fragments, first occurrence per 200-character key.

    Empty fragments are dropped.
    """
    seen = set()
    unique = []
    for fragment in fragments:
        normalized = normalize_fragment(fragment.text)
        if not normalized:
            continue
        key = normalized[:DEDUP_KEY_CHARS]
        if key in seen:
            continue
        seen.add(key)
        unique.append(normalized)
    return unique


def find_resource_for_fragment(
    fragment: str,
    resources: Sequence[Resource],
    normalized_texts: Optional[Dict[int, str]] = None,
) -> Optional[Resource]:
    """First resource whose normalized extracted text contains the fragment."""
    if not fragment:
        return None

    for resource in resources:
        if normalized_texts is not None and resource.id in normalized_texts:
            haystack = normalized_texts[resource.id]
        else:
            haystack = normalize_whitespace(resource.extracted_text)
        if haystack and fragment in haystack:
            return resource
    return None


def resolve_citations(
    fragments: Iterable[GroundingFragment],
    resources: Sequence[Resource],
) -> List[str]:
    """
    Resolve grounding fragments to resource display names.

    Returns:
        Display names in first-seen order, without duplicates. Fragments that
        match no resource are skipped.
    """
    normalized_texts = {
        r.id: normalize_whitespace(r.extracted_text)
        for r in resources
        if r.extracted_text and r.extracted_text.strip()
    }
    candidates = [r for r in resources if r.id in normalized_texts]

    names: List[str] = []
    for fragment in unique_fragments(fragments):
        resource = find_resource_for_fragment(fragment, candidates, normalized_texts)
        if resource is None:
            logger.debug(f"Could not match chunk to any resource: {fragment[:50]}")
            continue

        name = resource.display_name
        if name not in names:
            logger.info(f"Matched grounding chunk to resource: {name}")
            names.append(name)

    return names


def strip_sources_section(answer: Optional[str]) -> str:
    """Remove a trailing model-written "Sources:" section."""
    if not answer:
        return ""
    return _TRAILING_SOURCES_RE.sub("", answer, count=1).strip()


def build_sources_footer(names: Sequence[str], has_forum_context: bool) -> str:
    lines = [f"- {name}" for name in names]
    if has_forum_context:
        lines.append(FORUM_SOURCE_LINE)
    if not lines:
        lines.append(GENERAL_KNOWLEDGE_LINE)
    return "\n\nSources:\n" + "\n".join(lines) + "\n"


def attribute_answer(
    answer: Optional[str],
    names: Sequence[str],
    has_forum_context: bool,
    notice: str = "",
) -> str:
    """Duplicate notice + cleaned model answer + canonical footer."""
    return notice + strip_sources_section(answer) + build_sources_footer(names, has_forum_context)
