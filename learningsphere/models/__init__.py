# Models Package
from learningsphere.models.user import User, Progress, generate_uuid
from learningsphere.models.question import Question
from learningsphere.models.practice import PracticeSession, SectionalSession
from learningsphere.models.adaptive_exam import AdaptiveExam
from learningsphere.models.exam import Exam
from learningsphere.models.live_session import LiveSession
from learningsphere.models.blog import Blog

__all__ = [
    "User",
    "Progress",
    "generate_uuid",
    "Question",
    "PracticeSession",
    "SectionalSession",
    "AdaptiveExam",
    "Exam",
    "LiveSession",
    "Blog",
]
