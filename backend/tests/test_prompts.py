from app.services.forum_qa.models import ThreadDocument
from app.services.forum_qa.prompts import (
    FORUM_CONTEXT_HEADER,
    NO_THREADS_PLACEHOLDER,
    THREAD_DELIMITER,
    PromptMode,
    build_instructions,
    build_question,
)


def test_instructions_interpolate_course_name_and_priority_order():
    text = build_instructions("CS101 - Intro")

    assert "Course name: CS101 - Intro" in text
    first = text.index("[INSTRUCTOR ANNOUNCEMENT] contain")
    second = text.index("[INSTRUCTOR ANSWERED] contain")
    third = text.index("Uploaded course documents")
    fourth = text.index("General domain knowledge")
    assert first < second < third < fourth
    assert "This question was previously answered in Post #[ID]" in text


def test_instructions_fall_back_to_unknown_course():
    assert "Course name: Unknown course" in build_instructions(None)


def test_strict_mode_forbids_general_knowledge():
    text = build_instructions("CS101", PromptMode.STRICT)

    assert "General domain knowledge" not in text
    assert "cannot find it in the course" in text


def test_question_without_threads_has_placeholder():
    text = build_question("When is the exam?", [])

    assert text.startswith("Student question:\n\nWhen is the exam?\n")
    assert NO_THREADS_PLACEHOLDER in text
    assert "general" in text.split(NO_THREADS_PLACEHOLDER)[1]


def test_question_with_threads_has_header_and_delimiters():
    docs = [
        ThreadDocument(thread_id=1, text="[POST #1]\nfirst\n", has_instructor_reply=False),
        ThreadDocument(thread_id=2, text="[POST #2]\nsecond\n", has_instructor_reply=True),
    ]

    text = build_question("Q?", docs)

    assert FORUM_CONTEXT_HEADER in text
    assert text.count(THREAD_DELIMITER) == 2
    assert text.index("[POST #1]") < text.index("[POST #2]")
    assert NO_THREADS_PLACEHOLDER not in text
