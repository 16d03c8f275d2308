"""
Adaptive exam model. Item selection and ability estimation happen in the
external adaptive engine; this table keeps the per-user record.
"""
from datetime import datetime, timedelta
from sqlalchemy import JSON
from learningsphere import db
from learningsphere.models.user import generate_uuid

DEFAULT_ABILITY = 0.5
DIFFICULTY_KEYS = {0: "veryEasy", 1: "easy", 2: "moderate", 3: "difficult"}
FINISHED_STATUSES = ("completed", "time_expired")


def _empty_breakdown():
    return {key: {"attempted": 0, "correct": 0, "accuracy": 0.0} for key in DIFFICULTY_KEYS.values()}


class AdaptiveExam(db.Model):
    __tablename__ = "adaptive_exams"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    status = db.Column(db.String(20), default="active", index=True)  # active, completed, abandoned, time_expired
    exam_number = db.Column(db.Integer, default=1)
    duration = db.Column(db.Integer, default=20)  # minutes
    start_time = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    end_time = db.Column(db.DateTime)

    initial_ability = db.Column(db.Float, default=DEFAULT_ABILITY)
    current_ability = db.Column(db.Float, default=DEFAULT_ABILITY)
    final_ability = db.Column(db.Float)

    responses = db.Column(JSON, default=list)
    total_questions = db.Column(db.Integer, default=0)
    correct_answers = db.Column(db.Integer, default=0)
    wrong_answers = db.Column(db.Integer, default=0)
    accuracy = db.Column(db.Float, default=0.0)

    total_time_seconds = db.Column(db.Float, default=0.0)
    average_time_per_question = db.Column(db.Float, default=0.0)
    fastest_answer = db.Column(db.Float)
    slowest_answer = db.Column(db.Float)

    difficulty_breakdown = db.Column(JSON, default=_empty_breakdown)
    xp_earned = db.Column(db.Integer, default=0)
    badges_earned = db.Column(JSON, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def add_response(self, response: dict):
        """Append a graded response and refresh the running statistics"""
        responses = list(self.responses or []) + [response]
        self.responses = responses
        self.total_questions = len(responses)
        self.correct_answers = sum(1 for r in responses if r.get("is_correct"))
        self.wrong_answers = self.total_questions - self.correct_answers
        self.accuracy = round(self.correct_answers / self.total_questions * 100, 2)
        self.current_ability = response.get("ability_after", self.current_ability)

        times = [float(r.get("time_spent") or 0) for r in responses]
        self.total_time_seconds = sum(times)
        self.average_time_per_question = self.total_time_seconds / self.total_questions
        self.fastest_answer = min(times)
        self.slowest_answer = max(times)

        breakdown = {k: dict(v) for k, v in (self.difficulty_breakdown or _empty_breakdown()).items()}
        key = DIFFICULTY_KEYS.get(response.get("difficulty_numeric"))
        if key:
            bucket = breakdown.setdefault(key, {"attempted": 0, "correct": 0, "accuracy": 0.0})
            bucket["attempted"] += 1
            if response.get("is_correct"):
                bucket["correct"] += 1
            bucket["accuracy"] = round(bucket["correct"] / bucket["attempted"] * 100, 2)
        self.difficulty_breakdown = breakdown

    def complete(self, final_ability: float = None, status: str = "completed"):
        self.status = status
        self.end_time = datetime.utcnow()
        self.final_ability = final_ability if final_ability is not None else self.current_ability

    def deadline(self) -> datetime:
        return self.start_time + timedelta(minutes=self.duration or 20)

    def time_remaining(self, now: datetime = None) -> int:
        now = now or datetime.utcnow()
        return max(0, int((self.deadline() - now).total_seconds()))

    @classmethod
    def last_user_ability(cls, user_id: str) -> float:
        last = cls.query.filter_by(user_id=user_id, status="completed") \
            .order_by(cls.created_at.desc()).first()
        if last and last.final_ability is not None:
            return last.final_ability
        return DEFAULT_ABILITY

    @classmethod
    def completed_count(cls, user_id: str) -> int:
        return cls.query.filter_by(user_id=user_id, status="completed").count()

    def to_dict(self, include_responses: bool = False):
        data = {
            "id": str(self.id),
            "session_id": self.session_id,
            "status": self.status,
            "exam_number": self.exam_number,
            "duration": self.duration,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "initial_ability": self.initial_ability,
            "current_ability": self.current_ability,
            "final_ability": self.final_ability,
            "total_questions": self.total_questions or 0,
            "correct_answers": self.correct_answers or 0,
            "wrong_answers": self.wrong_answers or 0,
            "accuracy": self.accuracy or 0.0,
            "time_stats": {
                "total": self.total_time_seconds or 0.0,
                "average": round(self.average_time_per_question or 0.0, 2),
                "fastest": self.fastest_answer,
                "slowest": self.slowest_answer,
            },
            "difficulty_breakdown": self.difficulty_breakdown or _empty_breakdown(),
            "xp_earned": self.xp_earned or 0,
            "badges_earned": self.badges_earned or [],
        }
        if include_responses:
            data["responses"] = self.responses or []
        return data
