import logging
from datetime import datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .database import db
from .errors import DuplicateSubmission, InvalidRating, ValidationError
from .models import UserFeedback
from .utils import utcnow

logger = logging.getLogger(__name__)

DUPLICATE_MESSAGE = "Feedback has already been submitted for this session"

_RESPONSE_MESSAGES = {
    5: "Thank you so much! I'm thrilled I could help you today.",
    4: "Thank you for the positive feedback! I'm glad I could assist you.",
    3: "Thank you for your feedback. I'll keep working to improve our service.",
    2: ("I'm sorry the experience wasn't better. Your feedback helps us improve. "
        "Would you like me to connect you with a member of our support team?"),
    1: ("I'm sorry to hear about your experience. Your feedback helps us improve. "
        "Would you like me to connect you with a member of our support team?"),
}
_DEFAULT_RESPONSE = "Thank you for your feedback!"


def generate_feedback_response_message(rating):
    if isinstance(rating, bool) or not isinstance(rating, int):
        return _DEFAULT_RESPONSE
    if rating < 1:
        return _DEFAULT_RESPONSE
    return _RESPONSE_MESSAGES[min(rating, 5)]


class FeedbackService:
    """Stores one rating per conversation and reports on collected feedback."""

    def __init__(self, closure_service=None, min_rating=1, max_rating=5, clock=utcnow):
        self.closure_service = closure_service
        self.min_rating = min_rating
        self.max_rating = max_rating
        self.clock = clock

    generate_feedback_response_message = staticmethod(generate_feedback_response_message)

    def _validate_rating(self, rating):
        if isinstance(rating, bool) or not isinstance(rating, int):
            raise InvalidRating(f"Rating must be an integer between {self.min_rating} and {self.max_rating}")
        if not self.min_rating <= rating <= self.max_rating:
            raise InvalidRating(f"Rating must be between {self.min_rating} and {self.max_rating}")

    def _find_existing(self, session_id):
        return UserFeedback.query.filter_by(session_id=session_id).first()

    def submit_feedback(self, session_id, rating, was_helpful=None, comment=None, topic=None,
                        user_id=None, message_count=None, device_type=None):
        logger.info("Submitting feedback for session: %s, rating: %s", session_id, rating)

        if self._find_existing(session_id) is not None:
            logger.warning("Feedback already exists for session: %s", session_id)
            raise DuplicateSubmission(DUPLICATE_MESSAGE)

        self._validate_rating(rating)

        feedback = UserFeedback(
            session_id=session_id,
            user_id=user_id,
            rating=rating,
            # 4-5 stars count as helpful unless the user said otherwise
            was_helpful=was_helpful if was_helpful is not None else rating >= 4,
            comment=comment,
            conversation_topic=topic,
            message_count=message_count,
            device_type=device_type,
            submitted_at=self.clock(),
        )
        db.session.add(feedback)
        try:
            db.session.commit()
        except IntegrityError:
            # a concurrent submission won the unique constraint on session_id
            db.session.rollback()
            logger.warning("Concurrent duplicate feedback for session: %s", session_id)
            raise DuplicateSubmission(DUPLICATE_MESSAGE)

        if self.closure_service is not None:
            self.closure_service.mark_conversation_completed(session_id)

        logger.info("Feedback saved successfully with ID: %s", feedback.id)
        return feedback

    def get_feedback_stats(self):
        total = db.session.query(func.count(UserFeedback.id)).scalar() or 0
        if total == 0:
            return {
                "totalFeedback": 0,
                "averageRating": 0.0,
                "helpfulCount": 0,
                "notHelpfulCount": 0,
                "satisfactionRate": 0.0,
            }

        average = db.session.query(func.avg(UserFeedback.rating)).scalar() or 0.0
        helpful = UserFeedback.query.filter_by(was_helpful=True).count()
        not_helpful = UserFeedback.query.filter_by(was_helpful=False).count()
        return {
            "totalFeedback": total,
            "averageRating": float(average),
            "helpfulCount": helpful,
            "notHelpfulCount": not_helpful,
            "satisfactionRate": helpful / total * 100,
        }

    def get_recent_feedback(self, days, now=None):
        if days < 0:
            raise ValidationError("days must not be negative")
        try:
            since = (now or self.clock()) - timedelta(days=days)
        except OverflowError:
            # window reaches past the earliest representable date
            since = datetime.min
        return (
            UserFeedback.query.filter(UserFeedback.submitted_at >= since)
            .order_by(UserFeedback.submitted_at.desc(), UserFeedback.id.desc())
            .all()
        )

    def get_user_feedback_history(self, user_id):
        return (
            UserFeedback.query.filter_by(user_id=user_id)
            .order_by(UserFeedback.submitted_at.desc(), UserFeedback.id.desc())
            .all()
        )

    def get_average_rating_by_topic(self, topic):
        """Average rating for a conversation topic, or None when nobody rated it."""
        average = (
            db.session.query(func.avg(UserFeedback.rating))
            .filter(UserFeedback.conversation_topic == topic)
            .scalar()
        )
        return float(average) if average is not None else None

    def get_feedback_by_rating_range(self, min_rating, max_rating):
        if min_rating > max_rating:
            raise ValidationError("min rating must not exceed max rating")
        return (
            UserFeedback.query.filter(UserFeedback.rating.between(min_rating, max_rating))
            .order_by(UserFeedback.submitted_at.desc(), UserFeedback.id.desc())
            .all()
        )

    def get_feedback_with_comments(self, limit=20, offset=0):
        return (
            UserFeedback.query.filter(UserFeedback.comment.isnot(None), func.length(UserFeedback.comment) > 0)
            .order_by(UserFeedback.submitted_at.desc(), UserFeedback.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )
