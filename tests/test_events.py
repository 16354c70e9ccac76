import pytest
from blinker import Signal

from events import CHAT_NEW_MESSAGE, ChatNewMessage, EventBus, JobApplied

PAYLOAD = ChatNewMessage(messageId=1, senderId=1, receiverId=2, message="hi")


def test_failing_subscriber_does_not_fail_publish():
    bus = EventBus()
    seen = []

    @bus.on(CHAT_NEW_MESSAGE)
    def broken(event):
        raise RuntimeError("mailer down")

    @bus.on(CHAT_NEW_MESSAGE)
    def recorder(event):
        seen.append(event)

    assert bus.publish(CHAT_NEW_MESSAGE, PAYLOAD) == 1
    assert seen == [PAYLOAD]


def test_unsubscribe():
    bus = EventBus()
    seen = []
    handler = bus.subscribe(CHAT_NEW_MESSAGE, seen.append)

    bus.unsubscribe(CHAT_NEW_MESSAGE, handler)

    assert bus.publish(CHAT_NEW_MESSAGE, PAYLOAD) == 0
    assert seen == []


def test_payload_type_enforced():
    bus = EventBus()

    with pytest.raises(TypeError):
        bus.publish(CHAT_NEW_MESSAGE, JobApplied(applicationId=1, userId=1, jobId=1, recruiterId=2))
    with pytest.raises(TypeError):
        bus.publish(CHAT_NEW_MESSAGE, {"messageId": 1})


def test_unknown_event_name():
    bus = EventBus()

    with pytest.raises(KeyError):
        bus.subscribe("job:deleted", print)
    with pytest.raises(KeyError):
        bus.publish("job:deleted", PAYLOAD)


def test_signal_receivers_get_the_payload():
    bus = EventBus()
    seen = []
    signal = bus.signal(CHAT_NEW_MESSAGE)

    @signal.connect
    def recorder(event):
        seen.append(event)

    assert isinstance(signal, Signal)
    assert bus.publish(CHAT_NEW_MESSAGE, PAYLOAD) == 1
    assert seen == [PAYLOAD]
