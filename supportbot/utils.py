import json
import difflib
import os
from datetime import datetime, timezone

FAQ_PATH = os.path.join(os.path.dirname(__file__), "data", "faqs.json")

POSITIVE_REPLIES = {"yes", "y", "ok", "okay", "sure", "yep", "yeah"}
NEGATIVE_REPLIES = {"no", "nope", "cancel", "not now", "later", "maybe later", "not sure", "maybe"}


def utcnow():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def load_faqs(path=FAQ_PATH):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return []


def find_best_faq_match(user_query, faqs, threshold=0.65):
    """
    Returns matching faq dict or None.
    Uses difflib.get_close_matches on faq questions (simple fuzzy match).
    """
    if not faqs or not user_query:
        return None
    questions = [faq.get("question", "").lower() for faq in faqs]
    best = difflib.get_close_matches(user_query.lower(), questions, n=1, cutoff=threshold)
    if best:
        for faq in faqs:
            if faq.get("question", "").lower() == best[0]:
                return faq
    return None


def _normalize_reply(message):
    return (message or "").strip().lower().rstrip("!.")


def is_positive_response(message):
    return _normalize_reply(message) in POSITIVE_REPLIES


def is_negative_response(message):
    return _normalize_reply(message) in NEGATIVE_REPLIES


def is_simple_response(message):
    """True for short yes/no style answers to a question the bot just asked."""
    return is_positive_response(message) or is_negative_response(message)
