from datetime import datetime

import pytest

from studytrack import schedule
from studytrack.errors import ValidationError, NotFoundError, ConflictError
from studytrack.sharing import (
    build_share_url,
    decode_schedule,
    encode_schedule,
    extract_share_data,
    import_shared_schedule,
)


def make_session(id, subject="math", start="2030-05-01T10:00", end="2030-05-01T11:00",
                 lessons=None, status="active"):
    return {
        "id": id,
        "subject": subject,
        "startDate": start,
        "endDate": end,
        "lessons": lessons if lessons is not None else [
            {"name": "Algebra", "completed": True},
            {"name": "Geometry", "completed": False},
        ],
        "status": status,
        "createdAt": "2030-01-01T00:00:00Z",
    }


def form(**overrides):
    data = {
        "subject": "physics",
        "date": "2030-05-01",
        "startTime": "12:00",
        "endTime": "13:00",
        "lessons": ["Motion", "Forces"],
    }
    data.update(overrides)
    return data


def by_status(sessions, status):
    return [s for s in sessions if s["status"] == status]

# ----------------------------------------------------
#                  SPLITTING
# ----------------------------------------------------

def test_split_creates_postponed_and_completed_sessions():
    sessions = schedule.split_session([make_session("a")], "a")

    postponed = by_status(sessions, "postponed")
    completed = by_status(sessions, "completed")
    assert len(sessions) == 2
    assert [l["name"] for l in postponed[0]["lessons"]] == ["Geometry"]
    assert [l["name"] for l in completed[0]["lessons"]] == ["Algebra"]
    assert all(s["id"] != "a" for s in sessions)
    assert postponed[0]["startDate"] == "2030-05-01T10:00"


def test_split_appends_to_existing_completed_session_of_subject():
    done = make_session("done", lessons=[{"name": "Sets", "completed": True}], status="completed")
    sessions = schedule.split_session([done, make_session("a")], "a")

    completed = by_status(sessions, "completed")
    assert len(completed) == 1
    assert completed[0]["id"] == "done"
    assert [l["name"] for l in completed[0]["lessons"]] == ["Sets", "Algebra"]


def test_split_does_not_mutate_input():
    original = [make_session("a")]
    schedule.split_session(original, "a")
    assert original[0]["status"] == "active"
    assert len(original[0]["lessons"]) == 2


def test_postpone_requires_active_session():
    with pytest.raises(ValidationError):
        schedule.postpone_session([make_session("p", status="postponed")], "p")


def test_postpone_unknown_session():
    with pytest.raises(NotFoundError):
        schedule.postpone_session([], "missing")

# ----------------------------------------------------
#                  AUTOMATIC TRANSFER
# ----------------------------------------------------

def test_transfer_only_touches_ended_active_sessions():
    sessions = [
        make_session("ended", end="2030-05-01T11:00"),
        make_session("running", start="2030-05-01T11:30", end="2030-05-01T12:30"),
        make_session("old-postponed", end="2030-05-01T09:00", status="postponed",
                     lessons=[{"name": "X", "completed": False}]),
    ]
    now = datetime(2030, 5, 1, 12, 0)

    updated, transferred = schedule.transfer_due_sessions(sessions, now)

    assert transferred == ["ended"]
    ids = [s["id"] for s in updated]
    assert "running" in ids
    assert "old-postponed" in ids
    assert "ended" not in ids


def test_transfer_happens_exactly_at_end_time():
    _, transferred = schedule.transfer_due_sessions(
        [make_session("a")], datetime(2030, 5, 1, 11, 0)
    )
    assert transferred == ["a"]

# ----------------------------------------------------
#                  LESSON TOGGLING
# ----------------------------------------------------

def test_completing_last_lesson_completes_active_session():
    sessions, outcome = schedule.mark_lesson_completed([make_session("a")], "a", 1)
    assert outcome == "completed"
    assert sessions[0]["status"] == "completed"


def test_toggle_back_keeps_session_active():
    sessions, outcome = schedule.mark_lesson_completed([make_session("a")], "a", 0)
    assert outcome == "toggled"
    assert sessions[0]["status"] == "active"
    assert sessions[0]["lessons"][0]["completed"] is False


def test_postponed_lesson_moves_to_new_completed_session():
    postponed = make_session("p", status="postponed", lessons=[
        {"name": "Waves", "completed": False},
        {"name": "Optics", "completed": False},
    ])
    sessions, outcome = schedule.mark_lesson_completed([postponed], "p", 0)

    assert outcome == "moved"
    assert [l["name"] for l in sessions[0]["lessons"]] == ["Optics"]
    completed = by_status(sessions, "completed")
    assert completed[0]["lessons"] == [{"name": "Waves", "completed": True}]
    assert completed[0]["startDate"] == postponed["startDate"]


def test_last_postponed_lesson_removes_postponed_session():
    done = make_session("done", lessons=[{"name": "Sets", "completed": True}], status="completed")
    postponed = make_session("p", status="postponed", lessons=[{"name": "Waves", "completed": False}])

    sessions, _ = schedule.mark_lesson_completed([done, postponed], "p", 0)

    assert [s["id"] for s in sessions] == ["done"]
    assert [l["name"] for l in sessions[0]["lessons"]] == ["Sets", "Waves"]


def test_completed_session_is_read_only():
    with pytest.raises(ValidationError):
        schedule.mark_lesson_completed([make_session("c", status="completed")], "c", 0)


def test_lesson_index_out_of_range():
    with pytest.raises(NotFoundError):
        schedule.mark_lesson_completed([make_session("a")], "a", 5)

# ----------------------------------------------------
#                  ADD / EDIT / CONFLICTS
# ----------------------------------------------------

def test_add_session_builds_active_document():
    sessions, doc = schedule.add_session([], form())
    assert doc["status"] == "active"
    assert doc["startDate"] == "2030-05-01T12:00"
    assert doc["endDate"] == "2030-05-01T13:00"
    assert doc["lessons"] == [
        {"name": "Motion", "completed": False},
        {"name": "Forces", "completed": False},
    ]
    assert sessions == [doc]


@pytest.mark.parametrize("overrides", [
    {"subject": ""},
    {"lessons": []},
    {"lessons": ["ok", "  "]},
    {"endTime": "11:00"},
    {"endTime": "12:00"},
    {"date": "01/05/2030"},
    {"status": "paused"},
])
def test_add_session_rejects_invalid_forms(overrides):
    with pytest.raises(ValidationError):
        schedule.add_session([], form(**overrides))


@pytest.mark.parametrize("start,end", [
    ("10:30", "12:00"),   # starts inside
    ("09:00", "10:30"),   # ends inside
    ("09:00", "12:00"),   # covers
    ("10:15", "10:45"),   # inside
])
def test_overlapping_active_session_conflicts(start, end):
    existing = [make_session("a")]
    with pytest.raises(ConflictError) as excinfo:
        schedule.add_session(existing, form(startTime=start, endTime=end))
    assert "Mathematics" in excinfo.value.message
    assert "Physics" in excinfo.value.message


def test_adjacent_and_inactive_sessions_do_not_conflict():
    existing = [
        make_session("a"),
        make_session("p", start="2030-05-01T12:00", end="2030-05-01T13:00", status="postponed"),
        make_session("other-day", start="2030-05-02T12:00", end="2030-05-02T13:00"),
    ]
    sessions, _ = schedule.add_session(existing, form(startTime="11:00", endTime="13:00"))
    assert len(sessions) == 4


def test_edit_keeps_completion_by_position_and_ignores_itself():
    sessions, doc = schedule.update_session(
        [make_session("a")], "a",
        form(subject="math", startTime="10:00", endTime="11:30",
             lessons=["Algebra II", "Geometry", "Calculus"]),
    )
    assert doc["id"] == "a"
    assert doc["endDate"] == "2030-05-01T11:30"
    assert [l["completed"] for l in doc["lessons"]] == [True, False, False]
    assert doc["status"] == "active"


def test_edit_can_change_status():
    _, doc = schedule.update_session(
        [make_session("a")], "a",
        form(startTime="10:00", endTime="11:00", status="postponed"),
    )
    assert doc["status"] == "postponed"

# ----------------------------------------------------
#                  VIEWS AND REMINDERS
# ----------------------------------------------------

def test_schedule_view_groups_and_sorts():
    sessions = [
        make_session("late", start="2030-05-01T15:00", end="2030-05-01T16:00"),
        make_session("early"),
        make_session("c", status="completed"),
        make_session("p", status="postponed"),
    ]
    view = schedule.schedule_view(sessions, datetime(2030, 5, 1, 10, 30))

    assert [s["id"] for s in view["active"]] == ["early", "late"]
    assert [s["id"] for s in view["completed"]] == ["c"]
    assert [s["id"] for s in view["postponed"]] == ["p"]
    early = view["active"][0]
    assert early["running"] is True
    assert early["progress"] == 50
    assert early["timeRemaining"] == {"hours": 0, "minutes": 30, "seconds": 0}
    assert view["active"][1]["timeRemaining"] is None


def test_time_remaining_is_none_after_end():
    assert schedule.time_remaining(make_session("a"), datetime(2030, 5, 1, 11, 0)) is None


def test_reminder_within_five_minutes_of_start():
    sessions = [make_session("a"), make_session("b", start="2030-05-01T10:30", end="2030-05-01T11:30")]
    reminders = schedule.due_reminders(sessions, datetime(2030, 5, 1, 9, 55))
    assert [r["sessionId"] for r in reminders] == ["a"]
    assert reminders[0]["minutesLeft"] == 5
    assert schedule.due_reminders(sessions, datetime(2030, 5, 1, 10, 0)) == []

# ----------------------------------------------------
#                  SHARING
# ----------------------------------------------------

def test_share_url_carries_active_sessions_with_lessons_reset():
    sessions = [make_session("a"), make_session("c", status="completed")]
    url = build_share_url("http://example.test/", sessions)

    assert url.startswith("http://example.test/study-schedule?import=")
    payload = decode_schedule(extract_share_data(url))
    assert len(payload["sessions"]) == 1
    shared = payload["sessions"][0]
    assert shared["subject"] == "math"
    assert all(not l["completed"] for l in shared["lessons"])
    assert "id" not in shared


def test_share_without_active_sessions_fails():
    with pytest.raises(ValidationError):
        build_share_url("http://example.test", [make_session("c", status="completed")])


def test_decode_accepts_standard_base64_and_unicode():
    import base64, json
    payload = {"sessions": [{"subject": "arabic", "startDate": "2030-05-01T10:00",
                             "endDate": "2030-05-01T11:00",
                             "lessons": [{"name": "النحو", "completed": False}]}]}
    data = base64.b64encode(json.dumps(payload).encode("utf-8")).decode("ascii")
    assert decode_schedule(data)["sessions"][0]["lessons"][0]["name"] == "النحو"
    assert decode_schedule(encode_schedule(payload)) == payload


@pytest.mark.parametrize("data", ["", "not base64!!", encode_schedule({"foo": 1}),
                                  encode_schedule({"sessions": [{"subject": "x"}]})])
def test_decode_rejects_damaged_links(data):
    with pytest.raises(ValidationError):
        decode_schedule(data)


def test_import_appends_new_active_sessions():
    payload = {"sessions": [{"subject": "biology", "startDate": "2030-05-03T08:00",
                             "endDate": "2030-05-03T09:00",
                             "lessons": [{"name": "Cells", "completed": False}]}]}
    existing = [make_session("a")]
    sessions, imported = import_shared_schedule(existing, payload)

    assert len(sessions) == 2
    assert imported[0]["status"] == "active"
    assert imported[0]["id"] != "a"
    assert imported[0]["startDate"] == "2030-05-03T08:00"


def shared_payload(**overrides):
    session = {"subject": "math", "startDate": "2030-01-01T10:00",
               "endDate": "2030-01-01T11:00",
               "lessons": [{"name": "Limits", "completed": False}]}
    session.update(overrides)
    return {"sessions": [session]}


@pytest.mark.parametrize("overrides", [
    {"lessons": None},
    {"lessons": "Limits"},
    {"lessons": [None]},
    {"lessons": [{"name": 3}]},
    {"subject": ""},
])
def test_decode_rejects_malformed_sessions(overrides):
    with pytest.raises(ValidationError) as excinfo:
        decode_schedule(encode_schedule(shared_payload(**overrides)))
    assert excinfo.value.message == "The share link is invalid or damaged"


@pytest.mark.parametrize("overrides,message", [
    ({"lessons": []}, "Add at least one lesson"),
    ({"lessons": [{"name": "  "}]}, "Please fill in all required fields"),
    ({"endDate": "2030-01-01T09:00"}, "End time must be after the start time"),
    ({"endDate": "2030-01-01T10:00"}, "End time must be after the start time"),
    ({"endDate": "2030-01-02T11:00"}, "A session must start and end on the same day"),
])
def test_decode_applies_session_rules(overrides, message):
    with pytest.raises(ValidationError) as excinfo:
        decode_schedule(encode_schedule(shared_payload(**overrides)))
    assert excinfo.value.message == message


def test_import_rejects_sessions_that_would_vanish_on_transfer():
    payload = shared_payload(startDate="2030-01-01T12:00", endDate="2030-01-01T11:00", lessons=[])
    with pytest.raises(ValidationError):
        import_shared_schedule([make_session("a")], payload)
