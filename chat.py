"""Chat persistence and the REST side of the chat subsystem.

Both write paths (``POST /api/chat/send`` and the ``sendMessage`` socket
event) go through :func:`send_message`, so anything one path stores is
visible to the other through :func:`get_history`.
"""
import logging

from flask import Blueprint
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy import and_, case, func, or_, select
from sqlalchemy.orm import aliased

import events
from errors import NotFound, ValidationError
from models import ChatMessage, Role, User, db, isoformat
from responses import envelope, json_body

logger = logging.getLogger(__name__)

chat_bp = Blueprint("chat", __name__)

HISTORY_LIMIT = 100

# who may start a conversation with whom
CONTACT_ROLES = {
    Role.USER: Role.RECRUITER,
    Role.RECRUITER: Role.USER,
}


def _as_user_id(value, field):
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer.")


def send_message(sender_id, receiver_id, text):
    """Validate and persist one message; returns the committed ChatMessage."""
    if receiver_id is None or receiver_id == "" or not isinstance(text, str) or not text.strip():
        raise ValidationError("Receiver ID and message are required.")

    sender_id = _as_user_id(sender_id, "senderId")
    receiver_id = _as_user_id(receiver_id, "receiverId")

    if db.session.get(User, sender_id) is None:
        raise NotFound("Sender not found.")
    if db.session.get(User, receiver_id) is None:
        raise NotFound("Receiver not found.")

    message = ChatMessage(sender_id=sender_id, receiver_id=receiver_id, message=text)
    db.session.add(message)
    db.session.commit()
    return message


def announce(message):
    events.bus.publish(
        events.CHAT_NEW_MESSAGE,
        events.ChatNewMessage(
            messageId=message.id,
            senderId=message.sender_id,
            receiverId=message.receiver_id,
            message=message.message,
        ),
    )


def _pair_filter(a, b):
    return or_(
        and_(ChatMessage.sender_id == a, ChatMessage.receiver_id == b),
        and_(ChatMessage.sender_id == b, ChatMessage.receiver_id == a),
    )


def get_history(current_user_id, other_user_id):
    other = db.session.get(User, other_user_id)
    if other is None:
        raise NotFound("User not found.")

    latest = db.session.scalars(
        select(ChatMessage)
        .where(_pair_filter(current_user_id, other_user_id))
        .order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc())
        .limit(HISTORY_LIMIT)
    ).all()

    return {
        "otherUser": other.public_profile(),
        "messages": [m.to_dict() for m in reversed(latest)],
    }


def list_conversations(current_user_id):
    """Latest message per counterpart, most recent conversation first.

    One query: rank each of the user's messages within its counterpart
    partition and keep the newest.
    """
    counterpart = case(
        (ChatMessage.sender_id == current_user_id, ChatMessage.receiver_id),
        else_=ChatMessage.sender_id,
    )
    ranked = (
        select(
            ChatMessage,
            counterpart.label("counterpart_id"),
            func.row_number()
            .over(
                partition_by=counterpart,
                order_by=(ChatMessage.created_at.desc(), ChatMessage.id.desc()),
            )
            .label("recency"),
        )
        .where(
            or_(
                ChatMessage.sender_id == current_user_id,
                ChatMessage.receiver_id == current_user_id,
            )
        )
        .subquery()
    )
    last_message = aliased(ChatMessage, ranked)

    rows = db.session.execute(
        select(last_message, User)
        .join(User, User.id == ranked.c.counterpart_id)
        .where(ranked.c.recency == 1)
        .order_by(ranked.c.created_at.desc(), ranked.c.id.desc())
    ).all()

    return [
        {
            "user": user.public_profile(),
            "lastMessage": message.to_dict(),
            "lastMessageAt": isoformat(message.created_at),
        }
        for message, user in rows
    ]


def list_available_contacts(user):
    query = User.query.filter(User.id != user.id)
    if user.role in CONTACT_ROLES:
        query = query.filter(User.role == CONTACT_ROLES[user.role])
    return [u.public_profile() for u in query.order_by(User.name.asc(), User.id.asc()).all()]


# ================= ROUTES =================
@chat_bp.get("/history/<int:user_id>")
@jwt_required()
def history(user_id):
    return envelope(get_history(current_user.id, user_id))


@chat_bp.get("/conversations")
@jwt_required()
def conversations():
    return envelope(list_conversations(current_user.id))


@chat_bp.post("/send")
@jwt_required()
def send():
    payload = json_body()
    message = send_message(current_user.id, payload.get("receiverId"), payload.get("message"))

    announce(message)
    return envelope(message.to_dict(), "Message sent successfully.", 201)


@chat_bp.get("/available-users")
@jwt_required()
def available_users():
    return envelope(list_available_contacts(current_user))
