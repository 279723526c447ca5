import pytest
from pydantic import ValidationError

import notification_actions as na
from database import create_document
from schemas import AdminNotificationPayload, TargetingOptions, UserSummary

ADMIN = UserSummary(id="admin-1", name="Admin User")


def payload(**targeting):
    return AdminNotificationPayload(
        title="New feature",
        description="We shipped something worth a look.",
        external_link="https://cardfeed.example/changelog",
        targeting=TargetingOptions(**targeting),
    )


def failing_for(recipients):
    def _create(collection_name, data):
        if data["user_id"] in recipients:
            raise RuntimeError("write rejected")
        return create_document(collection_name, data)
    return _create


@pytest.mark.parametrize("status_args,expected", [
    ((3, 0), "completed"),
    ((3, 1), "partial_failure"),
    ((3, 3), "failed"),
    ((0, 0), "completed"),
])
def test_broadcast_status(status_args, expected):
    assert na.broadcast_status(*status_args) == expected


def test_targeting_requires_identifier():
    with pytest.raises(ValidationError):
        TargetingOptions(type="specific")
    with pytest.raises(ValidationError):
        TargetingOptions(type="category")


def test_payload_validation():
    with pytest.raises(ValidationError):
        AdminNotificationPayload(title="Hi", description="long enough text", targeting={"type": "all"})
    with pytest.raises(ValidationError):
        AdminNotificationPayload(title="Hello there", description="short", targeting={"type": "all"})


def test_broadcast_to_all_users(mongo, make_user):
    for uid in ("u1", "u2", "u3"):
        make_user(uid)

    result = na.send_bulk_notifications(payload(type="all"), sent_by=ADMIN)

    assert result.success is True
    assert result.count == 3 and result.errors == 0 and result.total_targeted == 3
    assert result.status == "completed"
    records = list(mongo["notifications"].find({"type": "announcement"}))
    assert sorted(r["user_id"] for r in records) == ["u1", "u2", "u3"]
    assert all(r["announcement_id"] == result.log_id for r in records)
    assert all(r["is_read"] is False for r in records)


def test_broadcast_to_specific_users_dedupes():
    result = na.send_bulk_notifications(payload(type="specific", user_ids=["a", "b", "a"]))

    assert result.total_targeted == 2
    assert result.count == 2


def test_category_broadcast_reaches_each_author_once(mongo, make_user, make_post):
    for uid in ("ada", "marco", "julia", "patty"):
        make_user(uid)
    make_post("ada", category="technology")
    make_post("ada", category="technology", title="Second")
    make_post("marco", category="technology")
    make_post("julia", category="technology", status="pending")
    make_post("patty", category="home-garden")

    result = na.send_bulk_notifications(payload(type="category", category_slug="technology"), sent_by=ADMIN)

    assert result.total_targeted == 3
    assert result.count == 3
    assert result.status == "completed"
    recipients = sorted(r["user_id"] for r in mongo["notifications"].find({"type": "announcement"}))
    assert recipients == ["ada", "julia", "marco"]

    log = mongo["admin_announcements"].find_one({})
    assert log["targeting_type"] == "category"
    assert log["target_identifier"] == "technology"
    assert log["total_targeted"] == 3
    assert log["success_count"] == 3
    assert log["error_count"] == 0
    assert log["status"] == "completed"
    assert log["sent_by"] == "admin-1"


def test_partial_failure_counts_and_continues(monkeypatch, mongo):
    monkeypatch.setattr(na, "create_document", failing_for({"b"}))

    result = na.send_bulk_notifications(payload(type="specific", user_ids=["a", "b", "c"]))

    assert result.success is False
    assert result.count == 2
    assert result.errors == 1
    assert result.count + result.errors == result.total_targeted
    assert result.status == "partial_failure"
    assert sorted(r["user_id"] for r in mongo["notifications"].find({})) == ["a", "c"]
    assert mongo["admin_announcements"].find_one({})["status"] == "partial_failure"


def test_all_inserts_failing_marks_broadcast_failed(monkeypatch):
    monkeypatch.setattr(na, "create_document", failing_for({"a", "b"}))

    result = na.send_bulk_notifications(payload(type="specific", user_ids=["a", "b"]))

    assert result.success is False
    assert result.count == 0 and result.errors == 2
    assert result.status == "failed"


def test_empty_audience_is_completed_but_not_successful(mongo):
    result = na.send_bulk_notifications(payload(type="category", category_slug="pets"))

    assert result.total_targeted == 0
    assert result.success is False
    assert result.status == "completed"
    assert mongo["admin_announcements"].count_documents({}) == 1


def test_audience_errors_propagate(monkeypatch):
    def broken(targeting):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(na, "resolve_audience", broken)
    with pytest.raises(RuntimeError):
        na.send_bulk_notifications(payload(type="all"))


def test_announcement_log_and_cleanup(mongo):
    first = na.send_bulk_notifications(payload(type="specific", user_ids=["a", "b"]), sent_by=ADMIN)
    na.send_bulk_notifications(payload(type="specific", user_ids=["c"]), sent_by=ADMIN)

    log = na.get_admin_announcement_log()
    assert len(log) == 2
    assert {entry.id for entry in log} >= {first.log_id}
    assert log[0].sent_at >= log[1].sent_at

    assert na.delete_announcement_notifications(first.log_id) == 2
    assert sorted(r["user_id"] for r in mongo["notifications"].find({})) == ["c"]
    assert mongo["admin_announcements"].count_documents({}) == 2
    assert na.delete_announcement_notifications("bogus") == 0


def test_announcement_shows_in_recipient_feed():
    na.send_bulk_notifications(payload(type="specific", user_ids=["alice"]), sent_by=ADMIN)

    notes = na.get_notifications_for_user("alice")

    assert len(notes) == 1
    assert notes[0].type == "announcement"
    assert notes[0].title == "New feature"
    assert notes[0].external_link == "https://cardfeed.example/changelog"
    assert notes[0].acting_user.id == "admin-1"
