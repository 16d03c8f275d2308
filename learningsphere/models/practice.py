"""
Practice and sectional test session models
"""
from datetime import datetime
from sqlalchemy import JSON
from learningsphere import db
from learningsphere.models.user import generate_uuid


def _seconds_left(deadline: datetime, now: datetime = None) -> int:
    if not deadline:
        return 0
    now = now or datetime.utcnow()
    return max(0, int((deadline - now).total_seconds()))


class PracticeSession(db.Model):
    """Timed adaptive practice session over the question bank"""
    __tablename__ = "practice_sessions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    start_time = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    end_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, default=60)  # minutes
    status = db.Column(db.String(20), default="active", index=True)  # active, completed, expired
    current_difficulty = db.Column(db.String(20), default="Easy")
    current_question_id = db.Column(db.Integer, db.ForeignKey("questions.id"))
    answered_question_ids = db.Column(JSON, default=list)
    responses = db.Column(JSON, default=list)
    score = db.Column(db.Integer, default=0)
    total_questions = db.Column(db.Integer, default=0)
    xp_earned = db.Column(db.Integer, default=0)
    new_badges = db.Column(JSON, default=list)
    level_up = db.Column(db.Boolean, default=False)
    completed_at = db.Column(db.DateTime)

    @property
    def accuracy(self) -> float:
        if not self.total_questions:
            return 0.0
        return round((self.score or 0) / self.total_questions * 100, 2)

    def time_remaining(self, now: datetime = None) -> int:
        return _seconds_left(self.end_time, now)

    def is_expired(self, now: datetime = None) -> bool:
        return (now or datetime.utcnow()) > self.end_time

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "status": self.status,
            "duration": self.duration,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "current_difficulty": self.current_difficulty,
            "score": self.score or 0,
            "total_questions": self.total_questions or 0,
            "accuracy": self.accuracy,
            "xp_earned": self.xp_earned or 0,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }


class SectionalSession(db.Model):
    """Multi-stage test where each section must be passed before the next opens"""
    __tablename__ = "sectional_sessions"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    # [{sectionId, difficulty, correct, total, passed, completed}]
    sections = db.Column(JSON, nullable=False)
    current_section_index = db.Column(db.Integer, default=0)
    current_question_id = db.Column(db.Integer, db.ForeignKey("questions.id"))
    served_question_ids = db.Column(JSON, default=list)
    responses = db.Column(JSON, default=list)
    # active, section_completed, completed, expired, terminated
    status = db.Column(db.String(20), default="active", index=True)
    section_deadline = db.Column(db.DateTime)
    fullscreen_violations = db.Column(db.Integer, default=0)
    end_reason = db.Column(db.String(50))
    xp_earned = db.Column(db.Integer, default=0)
    new_badges = db.Column(JSON, default=list)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    completed_at = db.Column(db.DateTime)

    @property
    def current_section(self) -> dict:
        return (self.sections or [])[self.current_section_index or 0]

    @property
    def is_finished(self) -> bool:
        return self.status in ("completed", "expired", "terminated")

    def time_remaining(self, now: datetime = None) -> int:
        return _seconds_left(self.section_deadline, now)

    def duration_minutes(self) -> float:
        end = self.completed_at or datetime.utcnow()
        return round((end - self.started_at).total_seconds() / 60, 2)

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "status": self.status,
            "sections": self.sections or [],
            "current_section_index": self.current_section_index or 0,
            "fullscreen_violations": self.fullscreen_violations or 0,
            "end_reason": self.end_reason,
            "xp_earned": self.xp_earned or 0,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None
        }
