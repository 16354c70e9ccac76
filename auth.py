import logging
from urllib.parse import urlencode

from flask import Blueprint, current_app, redirect, request, session
from flask_jwt_extended import (
    JWTManager, create_access_token, create_refresh_token, current_user,
    jwt_required,
)
from werkzeug.security import check_password_hash, generate_password_hash

import events
import google_oauth
from errors import AuthError, Conflict, ValidationError, form_error
from forms import LoginForm, SignupForm
from models import Role, User, db
from responses import envelope, error_envelope

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
jwt = JWTManager()


def issue_tokens(user):
    identity = str(user.id)
    return {
        "accessToken": create_access_token(identity=identity),
        "refreshToken": create_refresh_token(identity=identity),
    }


def init_auth(app):
    jwt.init_app(app)

    @jwt.user_lookup_loader
    def load_user(_jwt_header, jwt_data):
        try:
            return db.session.get(User, int(jwt_data["sub"]))
        except (TypeError, ValueError):
            return None

    @jwt.user_lookup_error_loader
    def user_missing(_jwt_header, _jwt_data):
        return error_envelope("User not found.", 401, "INVALID_TOKEN")

    @jwt.unauthorized_loader
    def missing_token(reason):
        return error_envelope("Access token required.", 401, "AUTH_REQUIRED")

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return error_envelope("Invalid token.", 401, "INVALID_TOKEN")

    @jwt.expired_token_loader
    def expired_token(_jwt_header, _jwt_data):
        return error_envelope("Token expired.", 401, "TOKEN_EXPIRED")


# ================= REGISTER =================
@auth_bp.post("/register")
def register():
    form = SignupForm()
    if not form.validate():
        raise form_error(form)

    if User.query.filter_by(email=form.email.data).first():
        raise Conflict("User already exists with this email.")

    user = User(
        name=form.name.data,
        email=form.email.data,
        password=generate_password_hash(form.password.data),
        role=Role(form.role.data),
    )
    db.session.add(user)
    db.session.commit()

    events.bus.publish(
        events.USER_REGISTERED,
        events.UserRegistered(userId=user.id, email=user.email, name=user.name, method="email"),
    )

    return envelope(
        {"user": user.to_dict(), **issue_tokens(user)},
        "User registered successfully.",
        201,
    )


# ================= LOGIN =================
@auth_bp.post("/login")
def login():
    form = LoginForm()
    if not form.validate():
        raise form_error(form)

    user = User.query.filter_by(email=form.email.data).first()
    if not user or not user.password or not check_password_hash(user.password, form.password.data):
        raise AuthError("Invalid credentials.", "INVALID_CREDENTIALS")

    return envelope(
        {"user": user.public_profile(), **issue_tokens(user)}, "Login successful."
    )


# ================= REFRESH =================
@auth_bp.post("/refresh")
@jwt_required(refresh=True)
def refresh():
    user = current_user
    return envelope(issue_tokens(user))


# ================= ME =================
@auth_bp.get("/me")
@jwt_required()
def me():
    return envelope(current_user.to_dict())


# ================= GOOGLE =================
@auth_bp.get("/google")
def google_login():
    if not google_oauth.is_configured():
        raise ValidationError("Google sign-in is not configured.")

    url, state = google_oauth.authorization_url(google_oauth.build_flow())
    session["oauth_state"] = state
    return redirect(url)


@auth_bp.get("/google/callback")
def google_callback():
    client_url = current_app.config["CLIENT_URL"]

    if "error" in request.args or "code" not in request.args:
        logger.warning("Google callback without code: %s", request.args.get("error"))
        return redirect(f"{client_url}/auth/error")

    try:
        flow = google_oauth.build_flow(state=session.pop("oauth_state", None))
        id_info = google_oauth.exchange_code(flow, request.url)
        user = google_oauth.resolve_user(id_info)
    except Exception:
        db.session.rollback()
        logger.exception("Google sign-in failed")
        return redirect(f"{client_url}/auth/error")

    return redirect(f"{client_url}/auth/success?{urlencode(issue_tokens(user))}")
