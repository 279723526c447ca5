from bson import ObjectId

import notification_actions as na
from schemas import Outcome, UserSummary

BOB = UserSummary(id="bob", name="Bob Reader")


def notify(recipient="alice", acting=BOB, type="like"):
    return na.create_notification(recipient, type, "post-1", "hello-world", "Hello World", acting)


def test_create_notification_returns_dto(mongo):
    note = notify()

    assert note.user_id == "alice"
    assert note.type == "like"
    assert note.is_read is False
    assert note.acting_user.id == "bob"
    assert note.created_at.tzinfo is not None
    assert mongo["notifications"].count_documents({"user_id": "alice"}) == 1


def test_create_notification_skips_self(mongo):
    assert notify(recipient="bob") is None
    assert mongo["notifications"].count_documents({}) == 0


def test_create_notification_swallows_store_errors(monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("insert failed")

    monkeypatch.setattr(na, "create_document", broken)
    assert notify() is None


def test_listing_is_newest_first_and_scoped():
    first = notify(type="like")
    second = notify(type="comment")
    notify(recipient="carol")

    notes = na.get_notifications_for_user("alice")

    assert {n.id for n in notes} == {first.id, second.id}
    assert notes[0].created_at >= notes[1].created_at
    assert na.get_unread_notification_count("alice") == 2


def test_mark_as_read_outcomes():
    note = notify()

    assert na.mark_notification_as_read(note.id, "alice") == Outcome.UPDATED
    assert na.mark_notification_as_read(note.id, "alice") == Outcome.NO_EFFECT
    assert na.get_unread_notification_count("alice") == 0


def test_mark_as_read_only_touches_own_notifications():
    note = notify()

    assert na.mark_notification_as_read(note.id, "mallory") == Outcome.NO_EFFECT
    assert na.get_unread_notification_count("alice") == 1


def test_invalid_ids_are_reported():
    assert na.mark_notification_as_read("nope", "alice") == Outcome.INVALID
    assert na.delete_notification("nope", "alice") == Outcome.INVALID


def test_mark_all_as_read():
    notify()
    notify(type="comment")

    assert na.mark_all_notifications_as_read("alice") == Outcome.UPDATED
    assert na.get_unread_notification_count("alice") == 0
    assert na.mark_all_notifications_as_read("alice") == Outcome.NO_EFFECT


def test_delete_notification_twice():
    note = notify()

    assert na.delete_notification(note.id, "alice") == Outcome.UPDATED
    assert na.delete_notification(note.id, "alice") == Outcome.NO_EFFECT
    assert na.delete_notification(str(ObjectId()), "alice") == Outcome.NO_EFFECT


def test_delete_all_notifications():
    notify()
    notify()
    notify(recipient="carol")

    assert na.delete_all_notifications("alice") == Outcome.UPDATED
    assert na.get_notifications_for_user("alice") == []
    assert len(na.get_notifications_for_user("carol")) == 1
    assert na.delete_all_notifications("alice") == Outcome.NO_EFFECT


def test_delete_notifications_related_to_user(mongo):
    notify(recipient="alice", acting=BOB)
    notify(recipient="bob", acting=UserSummary(id="alice", name="Alice"))
    notify(recipient="carol", acting=UserSummary(id="dave", name="Dave"))

    assert na.delete_notifications_related_to_user("bob") is True

    remaining = list(mongo["notifications"].find({}))
    assert [n["user_id"] for n in remaining] == ["carol"]
