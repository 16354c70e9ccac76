"""Google sign-in: OAuth flow construction, code exchange, account linking."""
import logging

from flask import current_app
from google.auth.transport import requests as google_requests
from google.oauth2 import id_token
from google_auth_oauthlib.flow import Flow

import events
from errors import AuthError
from models import Role, User, db

logger = logging.getLogger(__name__)

SCOPES = [
    "openid",
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
]


def is_configured():
    return bool(
        current_app.config.get("GOOGLE_CLIENT_ID")
        and current_app.config.get("GOOGLE_CLIENT_SECRET")
    )


def build_flow(state=None):
    config = current_app.config
    flow = Flow.from_client_config(
        {
            "web": {
                "client_id": config["GOOGLE_CLIENT_ID"],
                "client_secret": config["GOOGLE_CLIENT_SECRET"],
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": "https://oauth2.googleapis.com/token",
                "redirect_uris": [config["GOOGLE_REDIRECT_URI"]],
            }
        },
        scopes=SCOPES,
        state=state,
    )
    flow.redirect_uri = config["GOOGLE_REDIRECT_URI"]
    return flow


def authorization_url(flow):
    return flow.authorization_url(
        access_type="offline",
        include_granted_scopes="true",
        prompt="select_account",
    )


def exchange_code(flow, authorization_response):
    """Trade the callback URL for verified ID token claims."""
    flow.fetch_token(authorization_response=authorization_response)
    return id_token.verify_oauth2_token(
        flow.credentials.id_token,
        google_requests.Request(),
        current_app.config["GOOGLE_CLIENT_ID"],
        clock_skew_in_seconds=10,
    )


def resolve_user(id_info):
    """Find the account for a Google identity, linking or creating as needed.

    Email is the natural key: a password account with the same email gets
    the Google id attached instead of a second account being created.
    """
    google_id = id_info.get("sub")
    email = id_info.get("email")
    if not google_id or not email:
        raise AuthError("Google account did not provide an id and email.")

    user = User.query.filter_by(google_id=google_id).first()
    if user:
        return user

    user = User.query.filter_by(email=email).first()
    if user:
        user.google_id = google_id
        db.session.commit()
        logger.info("Linked Google account to user %s", user.id)
        return user

    user = User(
        name=id_info.get("name") or email.split("@")[0],
        email=email,
        google_id=google_id,
        role=Role.USER,
    )
    db.session.add(user)
    db.session.commit()

    events.bus.publish(
        events.USER_REGISTERED,
        events.UserRegistered(userId=user.id, email=user.email, name=user.name, method="google"),
    )
    return user
