from conftest import FakeSupabase

from app.services.db.courses import CourseService
from app.services.db.threads import ThreadService, is_instructor_role, row_to_thread, search_filter


def post_row(post_id, role="student", replies=(), **overrides):
    row = {
        "id": post_id,
        "title": f"Post {post_id}",
        "body": "<p>body</p>",
        "created_at": "2025-01-10T12:00:00Z",
        "course_id": 1,
        "author_id": "user-1",
        "author": {"role": role},
        "course": {"code": "CS101", "name": "Intro"},
        "replies": list(replies),
    }
    row.update(overrides)
    return row


def test_instructor_roles():
    assert is_instructor_role("Instructor")
    assert is_instructor_role("admin")
    assert not is_instructor_role("student")
    assert not is_instructor_role(None)


def test_row_mapping_orders_replies_and_flags_model_replies():
    thread = row_to_thread(post_row(
        1,
        role="instructor",
        replies=[
            {"id": 3, "body": "late", "created_at": "2025-01-10T14:00:00Z", "llm_generated": True},
            {"id": 2, "body": "early", "created_at": "2025-01-10T13:00:00Z", "from_instructor": True},
        ],
    ))

    assert thread.author_is_instructor
    assert [r.id for r in thread.replies] == [2, 3]
    assert thread.replies[1].model_generated
    assert thread.has_instructor_reply
    assert thread.course_code == "CS101"
    assert thread.created_at.tzinfo is not None


def test_embedded_author_may_arrive_as_list():
    thread = row_to_thread(post_row(1, author=[{"role": "admin"}]))
    assert thread.author_is_instructor


def test_anonymous_post_is_never_an_announcement():
    thread = row_to_thread(post_row(1, role="instructor", author_id=None))
    assert not thread.author_is_instructor


def test_list_threads_reads_course_posts():
    db = FakeSupabase(tables={"posts": [post_row(1), post_row(2, course_id=2)]})

    threads = ThreadService(db).list_threads(1, limit=50)

    assert [t.id for t in threads] == [1]
    assert "replies(" in db.selects[0][1]


def test_search_filter_covers_title_and_body():
    assert search_filter(["midterm", "room"]) == (
        "title.ilike.%midterm%,body.ilike.%midterm%,"
        "title.ilike.%room%,body.ilike.%room%"
    )


def test_list_threads_with_search_terms_filters_in_the_query():
    db = FakeSupabase(tables={"posts": [
        post_row(1, title="Midterm room?"),
        post_row(2, body="<p>Where is the MIDTERM held</p>"),
        post_row(3, title="Lab partners"),
    ]})

    threads = ThreadService(db).list_threads(1, search_terms=["midterm"])

    assert sorted(t.id for t in threads) == [1, 2]
    assert db.or_filters == [("posts", "title.ilike.%midterm%,body.ilike.%midterm%")]


def test_list_threads_without_terms_sends_no_text_filter():
    db = FakeSupabase(tables={"posts": [post_row(1)]})

    ThreadService(db).list_threads(1, search_terms=[])

    assert db.or_filters == []


def test_insert_llm_reply_row():
    db = FakeSupabase(tables={"replies": []})

    stored = ThreadService(db).insert_llm_reply(5, "Generated")

    assert stored["post_id"] == 5
    assert stored["llm_generated"] is True
    assert stored["reviewed"] is False
    assert stored["author_id"] is None


def test_course_display_name_and_store_update():
    db = FakeSupabase(tables={"courses": [{"id": 1, "code": "CS101", "name": "Intro"}]})
    service = CourseService(db)

    assert CourseService.display_name(service.get_course(1)) == "CS101 - Intro"
    assert CourseService.display_name({"code": "", "name": "Intro"}) == "Intro"
    assert service.set_store_id(1, "vs_9")
    assert db.tables["courses"][0]["file_search_store_id"] == "vs_9"
