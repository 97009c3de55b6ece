from .database import db
from .utils import utcnow


def _iso(value):
    return value.isoformat() if value else None


class UserFeedback(db.Model):
    __tablename__ = "user_feedback"
    id = db.Column(db.Integer, primary_key=True)
    # one feedback record per conversation
    session_id = db.Column(db.String(100), nullable=False, unique=True, index=True)
    user_id = db.Column(db.String(50), nullable=True, index=True)
    rating = db.Column(db.Integer, nullable=False)
    was_helpful = db.Column(db.Boolean, nullable=False)
    comment = db.Column(db.String(1000), nullable=True)
    conversation_topic = db.Column(db.String(50), nullable=True)
    message_count = db.Column(db.Integer, nullable=True)
    device_type = db.Column(db.String(20), nullable=True)  # "mobile", "desktop", "tablet"
    submitted_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "userId": self.user_id,
            "rating": self.rating,
            "wasHelpful": self.was_helpful,
            "comment": self.comment,
            "conversationTopic": self.conversation_topic,
            "messageCount": self.message_count,
            "deviceType": self.device_type,
            "submittedAt": _iso(self.submitted_at),
        }


class ChatMessage(db.Model):
    __tablename__ = "chat_message"
    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.String(100), nullable=False, index=True)
    sender = db.Column(db.String(20))  # "user" or "bot"
    text = db.Column(db.Text)
    timestamp = db.Column(db.DateTime, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "sessionId": self.session_id,
            "sender": self.sender,
            "text": self.text,
            "timestamp": _iso(self.timestamp),
        }
