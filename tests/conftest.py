import pytest
from flask_jwt_extended import create_access_token
from werkzeug.security import generate_password_hash

import events
from app import create_app
from config import TestConfig
from models import Role, User, db
from sockets import socketio


@pytest.fixture
def app(tmp_path):
    config = type("LocalTestConfig", (TestConfig,), {"UPLOAD_FOLDER": str(tmp_path / "uploads")})
    app = create_app(config)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make(name, role=Role.USER, email=None, password=None):
        user = User(
            name=name,
            email=email or f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            password=generate_password_hash(password) if password else None,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make


@pytest.fixture
def seeker(make_user):
    return make_user("Sam Seeker", Role.USER)


@pytest.fixture
def recruiter(make_user):
    return make_user("Rita Recruiter", Role.RECRUITER)


@pytest.fixture
def admin(make_user):
    return make_user("Ada Admin", Role.ADMIN)


def access_token(user):
    return create_access_token(identity=str(user.id))


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        return {"Authorization": f"Bearer {access_token(user)}"}
    return _headers


@pytest.fixture
def socket_client(app):
    clients = []

    def _connect(user=None, token=None):
        auth = {"token": token or access_token(user)} if (user or token) else None
        client = socketio.test_client(app, auth=auth)
        clients.append(client)
        return client

    yield _connect
    for client in clients:
        if client.is_connected():
            client.disconnect()


@pytest.fixture
def captured_events():
    """Record every domain event published during the test."""
    seen = []
    handlers = []
    for name in events.PAYLOAD_TYPES:
        def handler(payload, name=name):
            seen.append((name, payload))
        events.bus.subscribe(name, handler)
        handlers.append((name, handler))
    yield seen
    for name, handler in handlers:
        events.bus.unsubscribe(name, handler)
