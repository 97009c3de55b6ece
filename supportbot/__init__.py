import logging

from flask import Flask
from flask_cors import CORS

from .closure import ConversationClosureService
from .database import db
from .errors import register_error_handlers
from .feedback import FeedbackService
from .routes import chat, feedback
from config import Config

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _configure_logging(level):
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("supportbot").setLevel(level)


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    _configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})
    db.init_app(app)

    with app.app_context():
        db.create_all()

    closure_service = ConversationClosureService.from_config(app.config)
    app.extensions["closure_service"] = closure_service
    app.extensions["feedback_service"] = FeedbackService(
        closure_service=closure_service,
        min_rating=app.config["FEEDBACK_MIN_RATING"],
        max_rating=app.config["FEEDBACK_MAX_RATING"],
    )

    register_error_handlers(app)
    app.register_blueprint(feedback)
    app.register_blueprint(chat)
    return app
