"""
Scheduled exam model
"""
from datetime import datetime, timedelta
from sqlalchemy import JSON
from learningsphere import db
from learningsphere.models.user import generate_uuid

EXAM_STATUSES = ("scheduled", "live", "ongoing", "completed")
ANSWER_LETTERS = ("A", "B", "C", "D")
PASS_PERCENTAGE = 50


class Exam(db.Model):
    """Admin-scheduled MCQ exam with a fixed time window"""
    __tablename__ = "exams"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    title = db.Column(db.String(300), nullable=False)
    description = db.Column(db.Text)
    subject = db.Column(db.String(100), nullable=False, index=True)
    topic = db.Column(db.String(200), nullable=False)
    difficulty = db.Column(db.String(20), default="medium")
    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False)
    duration = db.Column(db.Integer, nullable=False)  # minutes
    status = db.Column(db.String(20), default="scheduled", index=True)
    # [{question, options[4], correctAnswer, explanation}]
    questions = db.Column(JSON, nullable=False)
    # [{user_id, answers, score, total, percentage, passed, time_taken, submitted_at}]
    results = db.Column(JSON, default=list)
    # [{user_id, started_at}]
    started_by = db.Column(JSON, default=list)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def refresh_status(self, now: datetime = None) -> str:
        """Derive the status from the clock; ongoing holds while inside the window"""
        now = now or datetime.utcnow()
        if now < self.start_time:
            status = "scheduled"
        elif now > self.end_time:
            status = "completed"
        elif self.status == "ongoing":
            status = "ongoing"
        else:
            status = "live"
        self.status = status
        return status

    def result_for(self, user_id: str):
        return next((r for r in (self.results or []) if r.get("user_id") == user_id), None)

    def start_for(self, user_id: str):
        return next((s for s in (self.started_by or []) if s.get("user_id") == user_id), None)

    def time_remaining(self, now: datetime = None) -> int:
        now = now or datetime.utcnow()
        return max(0, int((self.end_time - now).total_seconds()))

    @staticmethod
    def window_end(start_time: datetime, duration: int) -> datetime:
        return start_time + timedelta(minutes=duration)

    def to_dict(self, include_answers: bool = False, results_for: str = None):
        """Serialize; results_for limits results to one user, None shows all"""
        if include_answers:
            questions = self.questions or []
        else:
            questions = [
                {"question": q.get("question"), "options": q.get("options", [])}
                for q in (self.questions or [])
            ]

        if results_for is None:
            results = self.results or []
        else:
            own = self.result_for(results_for)
            results = [own] if own else []

        return {
            "id": str(self.id),
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "topic": self.topic,
            "difficulty": self.difficulty,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "duration": self.duration,
            "status": self.status,
            "total_questions": len(self.questions or []),
            "questions": questions,
            "results": results,
            "participants": len(self.results or []),
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
