"""
User and Progress models for the LearningSphere core service
"""
from datetime import datetime
import uuid
from sqlalchemy import JSON
from werkzeug.security import generate_password_hash, check_password_hash
from learningsphere import db

ROLES = ("learner", "tutor", "admin")


# Use String for UUID to support both SQLite and PostgreSQL
def generate_uuid():
    return str(uuid.uuid4())


def _default_experience():
    return {"total": 0, "from_practice": 0, "from_exams": 0, "level": 1}


class User(db.Model):
    """Platform user: learner, tutor, or admin"""
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default="learner")  # learner, tutor, admin
    is_tutor = db.Column(db.Boolean, default=False)

    bio = db.Column(db.Text)
    avatar_url = db.Column(db.String(500))
    interests = db.Column(JSON, default=list)
    skills = db.Column(JSON, default=list)
    location = db.Column(JSON)  # list of places or a single string

    is_active = db.Column(db.Boolean, default=True)
    is_banned = db.Column(db.Boolean, default=False)

    reset_password_token = db.Column(db.String(64), index=True)
    reset_password_expires = db.Column(db.DateTime)

    # Practice and exam records kept on the user for dashboards and reports
    practice_history = db.Column(JSON, default=list)
    practice_stats = db.Column(JSON, default=dict)
    practice_badges = db.Column(JSON, default=list)
    exam_history = db.Column(JSON, default=list)
    exam_stats = db.Column(JSON, default=dict)
    experience = db.Column(JSON, default=_default_experience)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    progress = db.relationship("Progress", backref="user", uselist=False, cascade="all, delete-orphan")

    def set_password(self, password: str):
        """Hash and set the password"""
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        """Verify password against hash"""
        return check_password_hash(self.password_hash, password)

    @property
    def can_tutor(self) -> bool:
        return self.role == "tutor" or bool(self.is_tutor)

    def to_dict(self, include_stats: bool = False):
        """Serialize user to dictionary"""
        data = {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            "is_tutor": bool(self.is_tutor),
            "bio": self.bio,
            "avatar_url": self.avatar_url,
            "interests": self.interests or [],
            "skills": self.skills or [],
            "location": self.location,
            "is_active": self.is_active,
            "is_banned": bool(self.is_banned),
            "experience": self.experience or _default_experience(),
            "created_at": self.created_at.isoformat() if self.created_at else None
        }
        if include_stats:
            data["practice_stats"] = self.practice_stats or {}
            data["practice_badges"] = self.practice_badges or []
            data["exam_stats"] = self.exam_stats or {}
        return data


class Progress(db.Model):
    """Gamification progress: sessions, hours, XP, level, badges, and streak"""
    __tablename__ = "progress"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id"), nullable=False, unique=True, index=True)
    sessions_completed = db.Column(db.Integer, default=0)
    live_sessions_attended = db.Column(db.Integer, default=0)
    normal_sessions_completed = db.Column(db.Integer, default=0)
    total_hours = db.Column(db.Float, default=0.0)
    current_level = db.Column(db.Integer, default=1)
    experience_points = db.Column(db.Integer, default=0, index=True)
    badges = db.Column(JSON, default=list)  # [{badge_id, name, earned_at}]
    streak_current = db.Column(db.Integer, default=0)
    streak_longest = db.Column(db.Integer, default=0)
    last_activity = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def has_badge(self, badge_id: str) -> bool:
        return any(b.get("badge_id") == badge_id for b in (self.badges or []))

    def to_dict(self):
        return {
            "id": str(self.id),
            "user_id": str(self.user_id),
            "sessions_completed": self.sessions_completed or 0,
            "live_sessions_attended": self.live_sessions_attended or 0,
            "normal_sessions_completed": self.normal_sessions_completed or 0,
            "total_hours": round(self.total_hours or 0.0, 2),
            "current_level": self.current_level or 1,
            "experience_points": self.experience_points or 0,
            "badges": self.badges or [],
            "streak": {
                "current": self.streak_current or 0,
                "longest": self.streak_longest or 0,
                "last_activity": self.last_activity.isoformat() if self.last_activity else None
            },
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
