"""
Tests for FeedbackService: submission, duplicate rejection and analytics.
"""

from datetime import timedelta

import pytest

from supportbot.closure import ConversationClosureService
from supportbot.database import db
from supportbot.errors import DuplicateSubmission, InvalidRating, ValidationError
from supportbot.feedback import FeedbackService, generate_feedback_response_message
from supportbot.models import UserFeedback
from supportbot.sessions import ClosurePhase


@pytest.fixture
def closure(clock):
    return ConversationClosureService(clock=clock)


@pytest.fixture
def service(app_ctx, closure, clock):
    return FeedbackService(closure_service=closure, min_rating=1, max_rating=5, clock=clock)


def _add_feedback(session_id, rating, submitted_at, user_id=None, topic=None, comment=None):
    row = UserFeedback(
        session_id=session_id,
        user_id=user_id,
        rating=rating,
        was_helpful=rating >= 4,
        conversation_topic=topic,
        comment=comment,
        submitted_at=submitted_at,
    )
    db.session.add(row)
    db.session.commit()
    return row


class TestSubmitFeedback:
    def test_stores_record(self, service, clock):
        saved = service.submit_feedback(
            "test-session-123", 5, comment="Great service!", topic="Payment Inquiry", user_id="test-user",
            message_count=8, device_type="Desktop",
        )
        assert saved.id is not None
        assert saved.rating == 5
        assert saved.was_helpful is True
        assert saved.submitted_at == clock.now

        stored = UserFeedback.query.filter_by(session_id="test-session-123").one()
        assert stored.comment == "Great service!"
        assert stored.conversation_topic == "Payment Inquiry"
        assert stored.message_count == 8

    def test_explicit_was_helpful_wins(self, service):
        saved = service.submit_feedback("s1", 5, was_helpful=False)
        assert saved.was_helpful is False

    def test_low_rating_not_helpful_by_default(self, service):
        assert service.submit_feedback("s1", 2).was_helpful is False

    def test_marks_conversation_completed(self, service, closure):
        closure.reset_user_activity("s1")
        service.submit_feedback("s1", 4)
        assert closure.store.get("s1").phase == ClosurePhase.CLOSED

    def test_duplicate_rejected_regardless_of_payload(self, service):
        service.submit_feedback("s1", 5, comment="first")
        with pytest.raises(DuplicateSubmission):
            service.submit_feedback("s1", 1, comment="second", user_id="someone-else")
        assert UserFeedback.query.filter_by(session_id="s1").count() == 1
        assert UserFeedback.query.filter_by(session_id="s1").one().comment == "first"

    def test_duplicate_reported_before_rating_validation(self, service):
        service.submit_feedback("s1", 5)
        with pytest.raises(DuplicateSubmission):
            service.submit_feedback("s1", 99)

    def test_constraint_catches_duplicate_missed_by_lookup(self, service, monkeypatch):
        service.submit_feedback("s1", 5, comment="first")
        # a concurrent submission can commit between the lookup and the insert
        monkeypatch.setattr(service, "_find_existing", lambda session_id: None)
        with pytest.raises(DuplicateSubmission):
            service.submit_feedback("s1", 2, comment="second")
        assert UserFeedback.query.filter_by(session_id="s1").count() == 1
        assert UserFeedback.query.filter_by(session_id="s1").one().comment == "first"
        # session is usable again after the rollback
        assert service.submit_feedback("s2", 3).id is not None

    @pytest.mark.parametrize("rating", [0, 6, -1, "5", None, True, 4.5])
    def test_invalid_rating(self, service, rating):
        with pytest.raises(InvalidRating):
            service.submit_feedback("s1", rating)
        assert UserFeedback.query.count() == 0

    def test_invalid_rating_is_validation_error(self, service):
        with pytest.raises(ValidationError):
            service.submit_feedback("s1", 10)

    def test_configured_bounds(self, app_ctx, clock):
        service = FeedbackService(min_rating=1, max_rating=10, clock=clock)
        assert service.submit_feedback("s1", 10).rating == 10


class TestResponseMessage:
    def test_buckets(self):
        assert "thrilled" in generate_feedback_response_message(5)
        assert "glad" in generate_feedback_response_message(4)
        assert "improve" in generate_feedback_response_message(3)
        for rating in (1, 2):
            message = generate_feedback_response_message(rating)
            assert "sorry" in message
            assert "support team" in message

    def test_total_and_pure(self):
        for rating in (-3, 0, 7, 100, None, "x"):
            assert generate_feedback_response_message(rating)
        assert generate_feedback_response_message(3) == generate_feedback_response_message(3)

    def test_out_of_range_defaults(self):
        assert generate_feedback_response_message(0) == "Thank you for your feedback!"

    def test_available_on_service(self, service):
        assert service.generate_feedback_response_message(5) == generate_feedback_response_message(5)


class TestFeedbackStats:
    def test_empty(self, service):
        stats = service.get_feedback_stats()
        assert stats["totalFeedback"] == 0
        assert stats["averageRating"] == 0.0
        assert stats["satisfactionRate"] == 0.0

    def test_aggregates(self, service):
        service.submit_feedback("s1", 5)
        service.submit_feedback("s2", 4)
        service.submit_feedback("s3", 1)
        stats = service.get_feedback_stats()
        assert stats["totalFeedback"] == 3
        assert stats["averageRating"] == pytest.approx(10 / 3)
        assert stats["helpfulCount"] == 2
        assert stats["notHelpfulCount"] == 1
        assert stats["satisfactionRate"] == pytest.approx(200 / 3)

    def test_average_updates_with_new_rating(self, service):
        service.submit_feedback("s1", 3)
        assert service.get_feedback_stats()["averageRating"] == 3.0
        service.submit_feedback("s2", 5)
        assert service.get_feedback_stats()["averageRating"] == 4.0

    def test_average_by_topic(self, service):
        service.submit_feedback("s1", 5, topic="billing")
        service.submit_feedback("s2", 3, topic="billing")
        service.submit_feedback("s3", 1, topic="cards")
        assert service.get_average_rating_by_topic("billing") == 4.0
        assert service.get_average_rating_by_topic("unknown") is None


class TestFeedbackQueries:
    def test_recent_excludes_older_records(self, service, clock):
        _add_feedback("old", 4, clock.now - timedelta(days=8))
        _add_feedback("mid", 3, clock.now - timedelta(days=3))
        _add_feedback("new", 5, clock.now - timedelta(hours=1))

        recent = service.get_recent_feedback(7)
        assert [f.session_id for f in recent] == ["new", "mid"]

    def test_recent_with_explicit_now(self, service, clock):
        _add_feedback("s1", 4, clock.now - timedelta(days=3))
        assert service.get_recent_feedback(7, now=clock.now + timedelta(days=5)) == []

    def test_recent_rejects_negative_days(self, service):
        with pytest.raises(ValidationError):
            service.get_recent_feedback(-1)

    def test_recent_with_window_beyond_earliest_date(self, service, clock):
        _add_feedback("ancient", 3, clock.now - timedelta(days=3650))
        _add_feedback("new", 5, clock.now)
        assert [f.session_id for f in service.get_recent_feedback(10 ** 6)] == ["new", "ancient"]

    def test_user_history_newest_first(self, service, clock):
        _add_feedback("a", 4, clock.now - timedelta(days=2), user_id="u1")
        _add_feedback("b", 5, clock.now - timedelta(days=1), user_id="u1")
        _add_feedback("c", 2, clock.now, user_id="u2")
        assert [f.session_id for f in service.get_user_feedback_history("u1")] == ["b", "a"]
        assert service.get_user_feedback_history("nobody") == []

    def test_rating_range(self, service, clock):
        _add_feedback("a", 1, clock.now)
        _add_feedback("b", 3, clock.now)
        _add_feedback("c", 5, clock.now)
        assert {f.session_id for f in service.get_feedback_by_rating_range(2, 5)} == {"b", "c"}
        with pytest.raises(ValidationError):
            service.get_feedback_by_rating_range(5, 1)

    def test_with_comments(self, service, clock):
        _add_feedback("a", 4, clock.now - timedelta(days=1), comment="useful")
        _add_feedback("b", 4, clock.now, comment="")
        _add_feedback("c", 4, clock.now)
        _add_feedback("d", 2, clock.now, comment="slow")
        assert [f.session_id for f in service.get_feedback_with_comments()] == ["d", "a"]
        assert [f.session_id for f in service.get_feedback_with_comments(limit=1, offset=1)] == ["a"]
