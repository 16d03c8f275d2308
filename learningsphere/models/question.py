"""
Question bank model
"""
from datetime import datetime
from learningsphere import db

DIFFICULTY_LEVELS = ["Very easy", "Easy", "Moderate", "Difficult"]
ANSWER_KEYS = ("a", "b", "c", "d")


class Question(db.Model):
    """Multiple-choice question used by practice and sectional tests"""
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    question_text = db.Column(db.Text, nullable=False)
    option_a = db.Column(db.Text, nullable=False)
    option_b = db.Column(db.Text, nullable=False)
    option_c = db.Column(db.Text, nullable=False)
    option_d = db.Column(db.Text, nullable=False)
    answer = db.Column(db.String(1), nullable=False)
    difficulty = db.Column(db.String(20), nullable=False, index=True)
    blooms_taxonomy = db.Column(db.String(50), default="Understand")
    tags = db.Column(db.String(500), default="")
    is_active = db.Column(db.Boolean, default=True, index=True)
    total_attempts = db.Column(db.Integer, default=0)
    correct_attempts = db.Column(db.Integer, default=0)
    created_by = db.Column(db.String(36), db.ForeignKey("users.id"))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def success_rate(self) -> float:
        if not self.total_attempts:
            return 0.0
        return round((self.correct_attempts or 0) / self.total_attempts * 100, 2)

    def record_attempt(self, correct: bool):
        self.total_attempts = (self.total_attempts or 0) + 1
        if correct:
            self.correct_attempts = (self.correct_attempts or 0) + 1

    def is_correct(self, user_answer) -> bool:
        if not user_answer:
            return False
        return str(user_answer).strip().lower() == self.answer

    def to_dict(self, include_answer: bool = True):
        data = {
            "id": self.id,
            "question_text": self.question_text,
            "options": {
                "a": self.option_a,
                "b": self.option_b,
                "c": self.option_c,
                "d": self.option_d,
            },
            "difficulty": self.difficulty,
            "blooms_taxonomy": self.blooms_taxonomy,
            "tags": self.tags or "",
        }
        if include_answer:
            data.update({
                "answer": self.answer,
                "is_active": self.is_active,
                "total_attempts": self.total_attempts or 0,
                "correct_attempts": self.correct_attempts or 0,
                "success_rate": self.success_rate,
                "created_at": self.created_at.isoformat() if self.created_at else None
            })
        return data
