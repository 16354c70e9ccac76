from flask_jwt_extended import create_refresh_token
from sqlalchemy.exc import OperationalError

import chat
import events
from models import ChatMessage, db


def _named(received, name):
    return [packet for packet in received if packet["name"] == name]


def test_connect_requires_valid_access_token(socket_client, seeker):
    assert not socket_client().is_connected()
    assert not socket_client(token="not-a-jwt").is_connected()
    assert not socket_client(token=create_refresh_token(identity=str(seeker.id))).is_connected()

    assert socket_client(seeker).is_connected()


def test_send_message_delivered_once_to_each_party(socket_client, seeker, recruiter, captured_events):
    alice = socket_client(seeker)
    bob = socket_client(recruiter)

    alice.emit("sendMessage", {"senderId": seeker.id, "receiverId": recruiter.id, "message": "hi"})

    to_alice = _named(alice.get_received(), "messageReceived")
    to_bob = _named(bob.get_received(), "messageReceived")
    assert len(to_alice) == 1
    assert len(to_bob) == 1

    payload = to_bob[0]["args"][0]
    assert payload["senderId"] == seeker.id
    assert payload["receiverId"] == recruiter.id
    assert payload["message"] == "hi"
    assert to_alice[0]["args"][0] == payload

    rows = ChatMessage.query.all()
    assert len(rows) == 1
    assert rows[0].id == payload["id"]
    assert [name for name, _ in captured_events] == [events.CHAT_NEW_MESSAGE]


def test_socket_message_visible_in_history(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "over the socket"})

    history = chat.get_history(recruiter.id, seeker.id)
    assert history["messages"][-1]["message"] == "over the socket"


def test_offline_receiver_still_persisted(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "are you there?"})

    assert len(_named(alice.get_received(), "messageReceived")) == 1
    assert ChatMessage.query.count() == 1


def test_every_connection_of_a_user_receives(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    bob_laptop = socket_client(recruiter)
    bob_phone = socket_client(recruiter)

    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "hi"})

    assert len(_named(bob_laptop.get_received(), "messageReceived")) == 1
    assert len(_named(bob_phone.get_received(), "messageReceived")) == 1


def test_message_to_self_reaches_both_groups(socket_client, seeker):
    alice = socket_client(seeker)
    alice.emit("sendMessage", {"receiverId": seeker.id, "message": "note to self"})

    # once as sender, once as receiver
    assert len(_named(alice.get_received(), "messageReceived")) == 2
    assert ChatMessage.query.count() == 1


def test_typing_relayed_to_receiver_only(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    bob = socket_client(recruiter)

    alice.emit("typing", {"senderId": seeker.id, "receiverId": recruiter.id})
    alice.emit("stopTyping", {"senderId": seeker.id, "receiverId": recruiter.id})

    typing = _named(bob.get_received(), "userTyping")
    assert [p["args"][0] for p in typing] == [
        {"senderId": seeker.id, "isTyping": True},
        {"senderId": seeker.id, "isTyping": False},
    ]
    assert alice.get_received() == []
    assert ChatMessage.query.count() == 0


def test_missing_receiver_errors_only_to_sender(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    bob = socket_client(recruiter)

    alice.emit("sendMessage", {"receiverId": 9999, "message": "hello?"})

    errors = _named(alice.get_received(), "error")
    assert len(errors) == 1
    assert errors[0]["args"][0]["message"] == "Receiver not found."
    assert bob.get_received() == []
    assert ChatMessage.query.count() == 0

    # the connection keeps working after an error
    assert alice.is_connected()
    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "second try"})
    assert len(_named(bob.get_received(), "messageReceived")) == 1


def test_empty_message_rejected(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": ""})

    errors = _named(alice.get_received(), "error")
    assert errors[0]["args"][0]["message"] == "Receiver ID and message are required."
    assert ChatMessage.query.count() == 0


def test_forged_sender_rejected(socket_client, seeker, recruiter):
    alice = socket_client(seeker)
    alice.emit("sendMessage", {"senderId": recruiter.id, "receiverId": seeker.id, "message": "x"})

    errors = _named(alice.get_received(), "error")
    assert len(errors) == 1
    assert ChatMessage.query.count() == 0


def test_join_only_own_room(socket_client, seeker, recruiter):
    alice = socket_client(seeker)

    alice.emit("join", seeker.id)
    assert alice.get_received() == []

    alice.emit("join", recruiter.id)
    errors = _named(alice.get_received(), "error")
    assert errors[0]["args"][0]["message"] == "You can only join your own room."


def test_database_failure_errors_only_to_sender(socket_client, seeker, recruiter, monkeypatch):
    alice = socket_client(seeker)
    bob = socket_client(recruiter)

    def failing_commit():
        raise OperationalError("INSERT INTO chat_message", {}, Exception("disk full"))

    monkeypatch.setattr(db.session(), "commit", failing_commit)
    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "lost"})
    monkeypatch.undo()

    assert [p["args"][0] for p in _named(alice.get_received(), "error")] == [
        {"message": "Failed to send message"}
    ]
    assert bob.get_received() == []
    assert ChatMessage.query.count() == 0

    alice.emit("sendMessage", {"receiverId": recruiter.id, "message": "retry"})
    assert len(_named(bob.get_received(), "messageReceived")) == 1
    assert ChatMessage.query.count() == 1


def test_disconnected_connection_leaves_group(socket_client, seeker, recruiter):
    alice_laptop = socket_client(seeker)
    alice_phone = socket_client(seeker)
    bob = socket_client(recruiter)

    alice_laptop.disconnect()
    bob.emit("sendMessage", {"receiverId": seeker.id, "message": "still there?"})

    assert not alice_laptop.is_connected()
    assert len(_named(alice_phone.get_received(), "messageReceived")) == 1
    assert len(_named(bob.get_received(), "messageReceived")) == 1
