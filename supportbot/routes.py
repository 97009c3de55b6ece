import logging
import math

from flask import Blueprint, current_app, jsonify, request

from .database import db
from .errors import ValidationError
from .models import ChatMessage
from .utils import (
    find_best_faq_match,
    is_negative_response,
    is_positive_response,
    is_simple_response,
    load_faqs,
)

logger = logging.getLogger(__name__)

feedback = Blueprint("feedback", __name__, url_prefix="/api/feedback")
chat = Blueprint("chat", __name__, url_prefix="/api/chat")

MAX_MESSAGE_LENGTH = 1000

HELP_MENU_REPLY = (
    "I'm here to help with whatever you need. You can ask me about:\n\n"
    "- Account & Payments: balance, due dates, payment options\n"
    "- Security: report fraud, block cards, dispute transactions\n"
    "- Statements: transaction history, monthly statements\n"
    "- Credit: limit increases, available credit\n\n"
    "What would you like to know about?"
)
GOODBYE_REPLY = (
    "Perfect! It looks like you have everything you need. "
    "Thank you for using our service today. Have a great day!"
)
FALLBACK_REPLY = (
    "Thanks for your message. I can help with balances, payments, cards, statements "
    "and credit limits. Could you tell me a bit more about what you need?"
)

# load faqs once
faqs = load_faqs()


def get_closure_service():
    return current_app.extensions["closure_service"]


def get_feedback_service():
    return current_app.extensions["feedback_service"]


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _required_str(data, key, max_length):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{key} is required")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{key} must not exceed {max_length} characters")
    return value


def _optional_str(data, key, max_length):
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{key} must be a string")
    if len(value) > max_length:
        raise ValidationError(f"{key} must not exceed {max_length} characters")
    return value


def _optional_number(data, key):
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be a number")
    if not math.isfinite(value):
        raise ValidationError(f"{key} must be a finite number")
    return value


def _optional_bool(data, key):
    value = data.get(key)
    if value is not None and not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false")
    return value


# -------------------
# Feedback and conversation closure
# -------------------

@feedback.route("/submit", methods=["POST"])
def submit_feedback():
    data = _json_body()
    session_id = _required_str(data, "sessionId", 100)
    logger.info("Received feedback submission for session: %s", session_id)

    message_count = _optional_number(data, "messageCount")
    if message_count is not None and (not isinstance(message_count, int) or message_count < 1):
        raise ValidationError("messageCount must be a positive integer")

    service = get_feedback_service()
    saved = service.submit_feedback(
        session_id,
        data.get("rating"),
        was_helpful=_optional_bool(data, "wasHelpful"),
        comment=_optional_str(data, "comment", 1000),
        topic=_optional_str(data, "conversationTopic", 50),
        user_id=_optional_str(data, "userId", 50),
        message_count=message_count,
        device_type=_optional_str(data, "deviceType", 20),
    )
    return jsonify({
        "success": True,
        "message": service.generate_feedback_response_message(saved.rating),
        "feedbackId": saved.id,
    })


@feedback.route("/silence", methods=["POST"])
def handle_silence():
    """
    POST JSON: { sessionId, silenceDurationSeconds }
    Returns the closure action to show, or 204 when nothing is due yet.
    """
    data = _json_body()
    session_id = _required_str(data, "sessionId", 100)
    silence = _optional_number(data, "silenceDurationSeconds")

    action = get_closure_service().handle_user_silence(session_id, silence)
    if action is None:
        return "", 204
    return jsonify(action.to_dict())


@feedback.route("/activity/<session_id>", methods=["POST"])
def reset_activity(session_id):
    get_closure_service().reset_user_activity(session_id)
    return "", 200


@feedback.route("/stats", methods=["GET"])
def feedback_stats():
    return jsonify(get_feedback_service().get_feedback_stats())


@feedback.route("/stats/topic/<topic>", methods=["GET"])
def topic_stats(topic):
    average = get_feedback_service().get_average_rating_by_topic(topic)
    return jsonify({"conversationTopic": topic, "averageRating": average})


@feedback.route("/recent", methods=["GET"])
def recent_feedback():
    days = request.args.get("days", default=7, type=int)
    records = get_feedback_service().get_recent_feedback(days)
    return jsonify([f.to_dict() for f in records])


@feedback.route("/user/<user_id>", methods=["GET"])
def user_feedback(user_id):
    records = get_feedback_service().get_user_feedback_history(user_id)
    return jsonify([f.to_dict() for f in records])


@feedback.route("/comments", methods=["GET"])
def feedback_with_comments():
    limit = request.args.get("limit", default=20, type=int)
    offset = request.args.get("offset", default=0, type=int)
    if limit < 1 or offset < 0:
        raise ValidationError("limit must be positive and offset must not be negative")
    records = get_feedback_service().get_feedback_with_comments(limit=limit, offset=offset)
    return jsonify([f.to_dict() for f in records])


@feedback.route("/rating", methods=["GET"])
def feedback_by_rating():
    service = get_feedback_service()
    low = request.args.get("min", default=service.min_rating, type=int)
    high = request.args.get("max", default=service.max_rating, type=int)
    records = service.get_feedback_by_rating_range(low, high)
    return jsonify([f.to_dict() for f in records])


@feedback.route("/status/<session_id>", methods=["GET"])
def conversation_status(session_id):
    return jsonify(get_closure_service().get_conversation_status(session_id))


@feedback.route("/sessions/cleanup", methods=["POST"])
def cleanup_sessions():
    removed = get_closure_service().cleanup_old_sessions()
    return jsonify({"removed": removed})


# -------------------
# Chat
# -------------------

def _save_message(session_id, sender, text):
    msg = ChatMessage(session_id=session_id, sender=sender, text=text)
    db.session.add(msg)
    db.session.commit()
    return msg


def _contextual_reply(session_id, user_message):
    """Answer a yes/no reply to the "anything else?" prompt, if one is pending."""
    closure = get_closure_service()
    if not closure.consume_further_assistance_context(session_id):
        return None, False
    if is_positive_response(user_message):
        return HELP_MENU_REPLY, False
    if is_negative_response(user_message):
        closure.mark_conversation_completed(session_id)
        return GOODBYE_REPLY, True
    return None, False


@chat.route("/message", methods=["POST"])
def send_message():
    data = _json_body()
    session_id = _required_str(data, "sessionId", 100)
    user_message = _required_str(data, "message", MAX_MESSAGE_LENGTH)

    _save_message(session_id, "user", user_message)

    reply, closed = None, False
    if is_simple_response(user_message):
        reply, closed = _contextual_reply(session_id, user_message)
    else:
        # a fresh question replaces any pending "anything else?" context
        get_closure_service().consume_further_assistance_context(session_id)

    if reply is None:
        faq_match = find_best_faq_match(user_message, faqs)
        reply = faq_match.get("answer") if faq_match else FALLBACK_REPLY

    if not closed:
        get_closure_service().reset_user_activity(session_id)

    bot_msg = _save_message(session_id, "bot", reply)
    return jsonify({
        "reply": reply,
        "sessionId": session_id,
        "timestamp": bot_msg.timestamp.isoformat(),
    })


@chat.route("/history/<session_id>", methods=["GET"])
def chat_history(session_id):
    messages = (
        ChatMessage.query.filter_by(session_id=session_id)
        .order_by(ChatMessage.timestamp.asc(), ChatMessage.id.asc())
        .all()
    )
    return jsonify([m.to_dict() for m in messages])
