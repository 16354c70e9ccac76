"""In-process domain event bus.

Write paths publish a typed payload under one of a fixed set of event names;
subscribers run synchronously in the publishing thread. A failing subscriber
is logged and skipped so it can never fail the write that triggered it.
"""
import logging
from dataclasses import dataclass

from blinker import Namespace

logger = logging.getLogger(__name__)

USER_REGISTERED = "user:registered"
JOB_APPLIED = "job:applied"
APPLICATION_STATUS_CHANGED = "application:statusChanged"
CHAT_NEW_MESSAGE = "chat:newMessage"


@dataclass(frozen=True)
class UserRegistered:
    userId: int
    email: str
    name: str
    method: str


@dataclass(frozen=True)
class JobApplied:
    applicationId: int
    userId: int
    jobId: int
    recruiterId: int


@dataclass(frozen=True)
class ApplicationStatusChanged:
    applicationId: int
    userId: int
    status: str
    jobTitle: str


@dataclass(frozen=True)
class ChatNewMessage:
    messageId: int
    senderId: int
    receiverId: int
    message: str


PAYLOAD_TYPES = {
    USER_REGISTERED: UserRegistered,
    JOB_APPLIED: JobApplied,
    APPLICATION_STATUS_CHANGED: ApplicationStatusChanged,
    CHAT_NEW_MESSAGE: ChatNewMessage,
}


class EventBus:
    """One blinker signal per event name.

    The payload object is passed as the signal sender, so receivers are
    called as ``handler(payload)``.
    """

    def __init__(self):
        self._signals = Namespace()
        for name in PAYLOAD_TYPES:
            self._signals.signal(name)

    def signal(self, name):
        self._check_name(name)
        return self._signals[name]

    def subscribe(self, name, handler):
        self.signal(name).connect(handler, weak=False)
        return handler

    def unsubscribe(self, name, handler):
        self.signal(name).disconnect(handler)

    def on(self, name):
        """Decorator form of :meth:`subscribe`."""
        def decorator(handler):
            return self.subscribe(name, handler)
        return decorator

    def publish(self, name, payload):
        """Deliver ``payload`` to every subscriber of ``name``.

        Returns how many subscribers completed without raising.
        """
        signal = self.signal(name)
        expected = PAYLOAD_TYPES[name]
        if not isinstance(payload, expected):
            raise TypeError(f"{name} expects {expected.__name__}, got {type(payload).__name__}")

        # Signal.send would stop at the first receiver that raises
        delivered = 0
        for receiver in list(signal.receivers_for(payload)):
            try:
                receiver(payload)
                delivered += 1
            except Exception:
                logger.exception("Subscriber %r failed for %s", receiver, name)
        return delivered

    def _check_name(self, name):
        if name not in PAYLOAD_TYPES:
            raise KeyError(f"Unknown event '{name}'")


bus = EventBus()


@bus.signal(USER_REGISTERED).connect
def log_user_registered(event):
    logger.info("New user registered: %s (via %s)", event.email, event.method)


@bus.signal(JOB_APPLIED).connect
def log_job_applied(event):
    logger.info("New job application: user=%s job=%s", event.userId, event.jobId)


@bus.signal(APPLICATION_STATUS_CHANGED).connect
def log_status_changed(event):
    logger.info(
        "Application status changed: %s for application %s", event.status, event.applicationId
    )


@bus.signal(CHAT_NEW_MESSAGE).connect
def log_chat_message(event):
    logger.info("New chat message from %s to %s", event.senderId, event.receiverId)