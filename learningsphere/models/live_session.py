"""
Live tutoring session model
"""
import random
import string
import time
from datetime import datetime
from sqlalchemy import JSON
from learningsphere import db
from learningsphere.models.user import generate_uuid


def generate_session_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"session_{int(time.time() * 1000)}_{suffix}"


class LiveSession(db.Model):
    """Tutor-hosted live session with participants and chat"""
    __tablename__ = "live_sessions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    session_id = db.Column(db.String(64), unique=True, nullable=False, index=True, default=generate_session_id)
    tutor_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    scheduled_time = db.Column(db.DateTime)
    max_participants = db.Column(db.Integer, default=10)
    is_active = db.Column(db.Boolean, default=False, index=True)
    is_approved = db.Column(db.Boolean, default=True)
    started_at = db.Column(db.DateTime)
    ended_at = db.Column(db.DateTime)
    participants = db.Column(JSON, default=list)  # [{user_id, joined_at}]
    attendee_ids = db.Column(JSON, default=list)  # everyone who has ever joined
    chat_messages = db.Column(JSON, default=list)  # [{user_id, username, message, timestamp}]
    transcript = db.Column(db.Text)
    summary = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tutor = db.relationship("User", foreign_keys=[tutor_id])

    def has_participant(self, user_id: str) -> bool:
        return any(p.get("user_id") == user_id for p in (self.participants or []))

    def has_attended(self, user_id: str) -> bool:
        return user_id in (self.attendee_ids or [])

    def can_access_chat(self, user_id: str) -> bool:
        return self.tutor_id == user_id or self.has_participant(user_id)

    @property
    def is_full(self) -> bool:
        return len(self.participants or []) >= (self.max_participants or 0)

    @property
    def is_joinable(self) -> bool:
        return bool(self.is_active or self.scheduled_time) and not self.ended_at

    def duration_hours(self) -> float:
        if not self.started_at:
            return 0.0
        end = self.ended_at or datetime.utcnow()
        return round((end - self.started_at).total_seconds() / 3600, 2)

    def to_dict(self):
        tutor = self.tutor
        return {
            "id": str(self.id),
            "session_id": self.session_id,
            "tutor": {"id": tutor.id, "name": tutor.name, "email": tutor.email} if tutor else None,
            "title": self.title,
            "description": self.description,
            "scheduled_time": self.scheduled_time.isoformat() if self.scheduled_time else None,
            "max_participants": self.max_participants,
            "is_active": bool(self.is_active),
            "is_approved": bool(self.is_approved),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "participants": self.participants or [],
            "summary": self.summary,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
