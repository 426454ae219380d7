"""Prompt templates for course question answering."""

from enum import Enum
from typing import Optional, Sequence

from .models import ThreadDocument


class PromptMode(str, Enum):
    """How the model may answer beyond the provided course materials."""

    FALLBACK = "fallback"  # general knowledge allowed, with disclosure
    STRICT = "strict"      # only course materials; otherwise say it is not found


INSTRUCTIONS_TEMPLATE = """You are an expert tutor for a specific university course.

You have access to TWO kinds of context:
1) The course's document search (slides, PDFs, assignments, etc.).
2) Past forum threads including:
   - [INSTRUCTOR ANNOUNCEMENT]: Official announcements from instructors
   - [INSTRUCTOR ANSWERED]: Q&A threads where instructors provided answers

SOURCE PRIORITY (follow strictly, highest first):
1. Threads marked [INSTRUCTOR ANNOUNCEMENT] contain official course information (dates, times, locations, policies). These are DEFINITIVE FACTS and override everything, even the documents.
2. Threads marked [INSTRUCTOR ANSWERED] contain authoritative answers to questions.
3. Uploaded course documents retrieved through document search.
{general_knowledge_rule}

CITATION RULES (STRICT):
- Instructor announcements: "According to an instructor announcement in post #[ID]..."
- Instructor answers: "According to an instructor's reply in post #[ID]..."
- Documents: "According to [document title]..." or "As explained in [document title]..."
{general_knowledge_citation}

DUPLICATE QUESTION HANDLING:
- If a forum thread asks a VERY similar or identical question, start your response with:
  "This question was previously answered in Post #[ID]: [Title]"
- Then answer based on that thread.
- Logistics questions (locations, times, deadlines) are commonly repeated; treat same-intent questions as duplicates even if worded differently.

DOCUMENT SEARCH:
- Search the uploaded materials before answering course content questions.
- If document search returns nothing relevant, say so explicitly.

Course name: {course_name}
"""

GENERAL_KNOWLEDGE_RULES = {
    PromptMode.FALLBACK: (
        "4. General domain knowledge, ONLY as a last resort when none of the above "
        "covers the question. You MUST say clearly that this part of the answer is "
        "general knowledge and not from the course materials."
    ),
    PromptMode.STRICT: (
        "4. Nothing else. Base all concrete facts ONLY on the sources above. If they "
        "do not contain a specific fact, say that you cannot find it in the course "
        "materials."
    ),
}

GENERAL_KNOWLEDGE_CITATIONS = {
    PromptMode.FALLBACK: "- General knowledge: state \"This is based on general knowledge, not course materials.\"",
    PromptMode.STRICT: "- Never present facts that are not in the cited sources.",
}

FORUM_CONTEXT_HEADER = (
    "=== RELEVANT FORUM CONTEXT ===\n"
    "Posts marked [INSTRUCTOR ANNOUNCEMENT] are official course information.\n"
    "Posts marked [INSTRUCTOR ANSWERED] contain authoritative answers.\n\n"
)

THREAD_DELIMITER = "\n========================================\n\n"

NO_THREADS_PLACEHOLDER = "(No similar resolved threads were found.)"

NO_THREADS_HINTS = {
    PromptMode.FALLBACK: (
        "Use the course documents if they help; otherwise fall back to general "
        "knowledge and say so."
    ),
    PromptMode.STRICT: (
        "Use only the course documents; if they do not answer the question, say "
        "you cannot find it."
    ),
}

QUESTION_TEMPLATE = """Student question:

{question}

----

Related forum threads (if any):

{context}
"""

UNKNOWN_COURSE = "Unknown course"


def build_instructions(
    course_name: Optional[str],
    mode: PromptMode = PromptMode.FALLBACK,
) -> str:
    """System instructions with the course name interpolated."""
    return INSTRUCTIONS_TEMPLATE.format(
        general_knowledge_rule=GENERAL_KNOWLEDGE_RULES[mode],
        general_knowledge_citation=GENERAL_KNOWLEDGE_CITATIONS[mode],
        course_name=course_name or UNKNOWN_COURSE,
    )


def build_forum_context(documents: Sequence[ThreadDocument]) -> str:
    """Concatenate rendered threads under the forum header, or '' if none."""
    if not documents:
        return ""
    parts = [FORUM_CONTEXT_HEADER]
    for doc in documents:
        parts.append(doc.text)
        parts.append(THREAD_DELIMITER)
    return "".join(parts)


def build_question(
    question: str,
    documents: Sequence[ThreadDocument],
    mode: PromptMode = PromptMode.FALLBACK,
) -> str:
    """User message: the literal question followed by the forum context."""
    context = build_forum_context(documents)
    if not context.strip():
        context = f"{NO_THREADS_PLACEHOLDER}\n{NO_THREADS_HINTS[mode]}"
    return QUESTION_TEMPLATE.format(question=question, context=context)
