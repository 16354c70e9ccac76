"""Socket.IO side of the chat subsystem.

Each authenticated connection joins the room ``user_<id>``; a user's group
is that room. Messages are persisted through :func:`chat.send_message`
before being pushed to the sender's and the receiver's rooms. Typing events
are relayed to the receiver's room only and never stored.
"""
import logging

from flask import request, session
from flask_jwt_extended import decode_token
from flask_jwt_extended.exceptions import JWTExtendedException
from flask_socketio import ConnectionRefusedError, SocketIO, emit, join_room
from jwt.exceptions import PyJWTError
from sqlalchemy.exc import SQLAlchemyError

import chat
from config import split_origins
from errors import ApiError, Forbidden
from models import User, db

logger = logging.getLogger(__name__)

socketio = SocketIO()


def room_for(user_id):
    return f"user_{user_id}"


def deliver(user_id, event, payload, skip_sid=None):
    """Emit to every live connection of ``user_id``."""
    socketio.emit(event, payload, to=room_for(user_id), skip_sid=skip_sid)


def _authenticate(auth):
    token = (auth or {}).get("token") if isinstance(auth, dict) else None
    token = token or request.args.get("token")
    if not token:
        return None
    try:
        claims = decode_token(token)
    except (PyJWTError, JWTExtendedException) as e:
        logger.info("Socket token rejected: %s", e)
        return None
    if claims.get("type") != "access":
        return None
    try:
        return db.session.get(User, int(claims["sub"]))
    except (KeyError, TypeError, ValueError):
        return None


def _sender_id():
    # per-connection session, filled in on connect
    user_id = session.get("user_id")
    if user_id is None:
        raise Forbidden("Not authenticated.")
    return user_id


def _check_claimed_sender(data, user_id):
    claimed = data.get("senderId")
    if claimed is not None and str(claimed) != str(user_id):
        raise Forbidden("senderId does not match the authenticated user.")


@socketio.on("connect")
def on_connect(auth=None):
    user = _authenticate(auth)
    if user is None:
        raise ConnectionRefusedError("Invalid or missing access token.")
    session["user_id"] = user.id
    join_room(room_for(user.id))
    logger.info("User %s connected: %s", user.id, request.sid)


@socketio.on("join")
def on_join(user_id=None):
    owner = _sender_id()
    if user_id is not None and str(user_id) != str(owner):
        raise Forbidden("You can only join your own room.")
    join_room(room_for(owner))
    logger.debug("User %s joined their room", owner)


@socketio.on("sendMessage")
def on_send_message(data):
    data = data if isinstance(data, dict) else {}
    sender_id = _sender_id()
    _check_claimed_sender(data, sender_id)

    message = chat.send_message(sender_id, data.get("receiverId"), data.get("message"))

    payload = message.to_dict()
    deliver(message.sender_id, "messageReceived", payload)
    deliver(message.receiver_id, "messageReceived", payload)

    chat.announce(message)


def _relay_typing(data, is_typing):
    data = data if isinstance(data, dict) else {}
    sender_id = _sender_id()
    _check_claimed_sender(data, sender_id)

    receiver_id = data.get("receiverId")
    try:
        receiver_id = int(receiver_id)
    except (TypeError, ValueError):
        return
    deliver(
        receiver_id,
        "userTyping",
        {"senderId": sender_id, "isTyping": is_typing},
        skip_sid=request.sid,
    )


@socketio.on("typing")
def on_typing(data):
    _relay_typing(data, True)


@socketio.on("stopTyping")
def on_stop_typing(data):
    _relay_typing(data, False)


@socketio.on("disconnect")
def on_disconnect(reason=None):
    user_id = session.get("user_id")
    logger.info("User %s disconnected: %s", user_id, request.sid)


@socketio.on_error_default
def on_error(err):
    if isinstance(err, ApiError):
        message = err.message
        logger.info("Socket event rejected for %s: %s", request.sid, message)
    elif isinstance(err, SQLAlchemyError):
        db.session.rollback()
        message = "Failed to send message"
        logger.exception("Chat persistence error")
    else:
        db.session.rollback()
        message = "Something went wrong"
        logger.exception("Socket handler error")
    emit("error", {"message": message})


def init_sockets(app):
    socketio.init_app(
        app,
        cors_allowed_origins=split_origins(app.config.get("CORS_ORIGINS")),
        async_mode="threading",
    )
