import logging
import logging.config
import os

from flask import Flask
from flask_cors import CORS

from auth import auth_bp, init_auth
from chat import chat_bp
from config import config_for, split_origins
from errors import register_error_handlers
from jobs import jobs_bp, uploads_bp
from models import db
from resumes import resumes_bp
from sockets import init_sockets, socketio
from users import users_bp

logger = logging.getLogger(__name__)


def configure_logging(app):
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": "[{levelname}] {asctime} {name}: {message}", "style": "{"},
        },
        "handlers": {
            "console": {"class": "logging.StreamHandler", "formatter": "standard"},
        },
        "root": {"handlers": ["console"], "level": app.config["LOG_LEVEL"]},
    })


def create_app(config=None):
    # ================= APP =================
    app = Flask(__name__)
    config = config or config_for()
    config.validate()
    app.config.from_object(config)
    app.url_map.strict_slashes = False

    configure_logging(app)

    if app.debug:
        # Google OAuth callbacks on http://localhost
        os.environ.setdefault("OAUTHLIB_INSECURE_TRANSPORT", "1")

    # ================= EXTENSIONS =================
    db.init_app(app)
    init_auth(app)
    CORS(
        app,
        resources={r"/api/*": {"origins": split_origins(app.config["CORS_ORIGINS"])}},
        allow_headers=["Authorization", "Content-Type"],
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    )
    init_sockets(app)
    register_error_handlers(app)

    # ================= ROUTES =================
    app.register_blueprint(auth_bp, url_prefix="/api/auth")
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(jobs_bp, url_prefix="/api/jobs")
    app.register_blueprint(resumes_bp, url_prefix="/api/resumes")
    app.register_blueprint(chat_bp, url_prefix="/api/chat")
    app.register_blueprint(uploads_bp)

    @app.route("/")
    def home():
        return "Job Portal API running"

    # ================= DATABASE / UPLOADS =================
    upload_folder = os.path.join(app.root_path, app.config["UPLOAD_FOLDER"])
    app.config["UPLOAD_FOLDER"] = upload_folder
    os.makedirs(upload_folder, exist_ok=True)
    with app.app_context():
        db.create_all()

    logger.info("App ready (db=%s)", app.config["SQLALCHEMY_DATABASE_URI"].split("://")[0])
    return app


# ================= RUN =================
if __name__ == "__main__":
    app = create_app()
    port = int(os.environ.get("PORT", 5000))
    socketio.run(app, host="0.0.0.0", port=port, debug=app.debug, allow_unsafe_werkzeug=True)
