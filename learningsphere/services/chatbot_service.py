"""
Chatbot Service - LearningSphere AI Assistant

Pipeline for a message:
1. Canned replies for small talk (greeting, goodbye, thanks, how-are-you)
2. Regex intent detection in priority order
3. Per-intent context from the database (guests get a login hint)
4. Gemini answer grounded in that context, or an intent template
"""
import json
import logging
import random
import re
from datetime import datetime
from typing import Dict, List, Optional

from learningsphere.models.adaptive_exam import AdaptiveExam
from learningsphere.models.exam import Exam
from learningsphere.models.live_session import LiveSession
from learningsphere.models.practice import PracticeSession
from learningsphere.models.user import User, Progress
from learningsphere.services.gemini_service import get_gemini_service

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are LearningSphere AI Assistant, the helpful study companion of the
LearningSphere tutoring platform. The platform offers adaptive exams, practice
sessions, sectional tests with progressive difficulty, scheduled exams, live
tutoring sessions, progress analytics with XP, levels and badges, and a blog.
Answer concisely and in a friendly tone. Use the user context provided; never
invent scores or dates that are not in it. If the user is a guest, invite them
to log in for personalised data."""

SMALL_TALK = [
    ("greeting", re.compile(r"\b(hi|hello|hey|good (morning|afternoon|evening))\b")),
    ("goodbye", re.compile(r"\b(bye|goodbye|see you|farewell|take care)\b")),
    ("thanks", re.compile(r"\b(thank you|thanks|appreciate it)\b")),
    ("casual_conversation", re.compile(r"\b(how are you|how do you do|whats up|what's up|how is it going)\b")),
]

SMALL_TALK_REPLIES = {
    "greeting": [
        "Hello {name}! Welcome to LearningSphere! How can I help you today?",
        "Hi there, {name}! Ready to boost your learning with LearningSphere?",
        "Hey {name}! Let's explore your learning journey together!",
    ],
    "goodbye": [
        "Goodbye {name}! Keep up the great work with your studies!",
        "See you later, {name}! Happy learning on LearningSphere!",
        "Take care, {name}! I'm here whenever you need study help.",
    ],
    "thanks": [
        "You're welcome, {name}!",
        "Happy to help, {name}!",
        "Anytime, {name}! Feel free to ask anything else.",
    ],
    "casual_conversation": [
        "I'm doing great, {name}! Ready to help you excel in your studies. How are you doing?",
        "I'm fantastic, thanks for asking! How can I assist you with LearningSphere today?",
    ],
}

SMALL_TALK_SUGGESTIONS = {
    "greeting": ["Show my exam schedule", "Check my practice test progress",
                 "View performance analytics", "Find live sessions"],
    "casual_conversation": ["Show my progress dashboard", "What should I study next?",
                            "Help me plan my study schedule"],
}

INTENT_PATTERNS = [
    ("dashboard_info", re.compile(r"\b(dashboard|overview|show (my )?stats?|my profile|main page|home)\b")),
    ("performance_info", re.compile(r"\b(performance|grade|score|result|analytics|report|trend|improvement|how (am i|did i) do)\b")),
    ("exam_info", re.compile(r"\b(exams?|tests?|quiz|practice|sectional|assessment|mock)\b")),
    ("timetable_info", re.compile(r"\b(schedule|timetable|class|today|tomorrow|timing|live session)\b")),
    ("help", re.compile(r"\b(help|guide|support|how|what can|features|tutorial|tour|tips)\b")),
    ("greeting", re.compile(r"\b(hello|hi|hey|good (morning|afternoon|evening)|greetings)\b")),
    ("goodbye", re.compile(r"\b(bye|goodbye|see you|farewell|exit|quit)\b")),
]

SUGGESTIONS = {
    "guest": {
        "general": ["What is LearningSphere?", "How do adaptive exams work?",
                    "What are sectional tests?", "How do I sign up?"],
    },
    "learner": {
        "general": ["Show my dashboard", "How did I do in my last exam?",
                    "Start a practice session", "Find upcoming live sessions"],
        "academic": ["What should I study next?", "Explain my weak areas",
                     "Suggest a sectional test", "How is my accuracy trending?"],
        "progress": ["How much XP do I need for the next level?", "Which badges can I earn next?",
                     "Show my practice streak"],
    },
    "tutor": {
        "general": ["Show my upcoming live sessions", "How do I add questions?",
                    "How do I schedule a session?"],
        "academic": ["Which questions have the lowest success rate?", "How do I write good MCQs?"],
    },
    "admin": {
        "general": ["Show platform analytics", "How many exams are scheduled?",
                    "How do I moderate a live session?"],
    },
}


def _display_name(user: Optional[User]) -> str:
    if user is None:
        return "there"
    return user.name or user.email.split("@")[0]


def simple_response(message: str, user: Optional[User]) -> Optional[Dict]:
    """Canned reply for small talk, or None"""
    text = message.lower().strip()
    for intent, pattern in SMALL_TALK:
        if pattern.search(text):
            reply = random.choice(SMALL_TALK_REPLIES[intent]).format(name=_display_name(user))
            return {
                "response": reply,
                "intent": intent,
                "suggestions": SMALL_TALK_SUGGESTIONS.get(intent, []),
            }
    return None


def detect_intent(message: str) -> str:
    text = message.lower().strip()
    for intent, pattern in INTENT_PATTERNS:
        if pattern.search(text):
            return intent
    return "general_conversation"


def generate_suggestions(role: str, category: str = "general") -> List[str]:
    by_role = SUGGESTIONS.get(role) or SUGGESTIONS["guest"]
    return by_role.get(category) or by_role["general"]


def smart_suggestions(intent: str, user: Optional[User], context: Dict) -> List[str]:
    if user is None:
        return generate_suggestions("guest")

    suggestions = []
    if intent in ("greeting", "dashboard_info"):
        practice = (user.practice_stats or {})
        if not practice.get("totalSessions") and not (user.exam_stats or {}).get("totalExams"):
            suggestions.append("Start your first practice exam")
        elif practice.get("averageAccuracy", 100) < 50:
            suggestions.extend(["Review weak topics", "Take a targeted practice session"])
        progress = context.get("progress") or {}
        if progress.get("current_level", 1) < 5:
            suggestions.append("Check XP goals for next level")
        suggestions.append("View detailed performance analytics")
    elif intent == "exam_info":
        suggestions.extend(["View exam history with detailed breakdowns",
                            "Check upcoming scheduled exams",
                            "Get exam preparation recommendations"])
    elif intent == "performance_info":
        suggestions.extend(["See badge collection and achievements",
                            "Track XP progression",
                            "Get personalized improvement tips"])
    elif intent == "timetable_info":
        suggestions.extend(["Join an upcoming live session", "Check upcoming scheduled exams"])
    else:
        suggestions.extend(generate_suggestions(user.role))
    return suggestions[:4]


# ============================================================================
# Context gathering
# ============================================================================

def upcoming_exams(limit: int = 5) -> List[Dict]:
    now = datetime.utcnow()
    exams = Exam.query.filter(Exam.end_time >= now).order_by(Exam.start_time.asc()).limit(limit).all()
    return [
        {"id": e.id, "title": e.title, "subject": e.subject,
         "start_time": e.start_time.isoformat(), "status": e.refresh_status(now)}
        for e in exams
    ]


def upcoming_live_sessions(limit: int = 5) -> List[Dict]:
    sessions = LiveSession.query.filter(LiveSession.ended_at.is_(None)) \
        .order_by(LiveSession.scheduled_time.asc()).limit(limit).all()
    return [
        {"session_id": s.session_id, "title": s.title, "is_active": bool(s.is_active),
         "scheduled_time": s.scheduled_time.isoformat() if s.scheduled_time else None}
        for s in sessions
    ]


def _progress_dict(user: User) -> Dict:
    progress = Progress.query.filter_by(user_id=user.id).first()
    return progress.to_dict() if progress else {}


def gather_context(intent: str, user: Optional[User]) -> Dict:
    if user is None:
        if intent in ("exam_info", "performance_info", "dashboard_info"):
            return {"message": "Log in to view your personalised data and progress analytics."}
        return {"message": "I can share general information about LearningSphere. "
                           "Log in for personalised features."}

    data: Dict = {}
    if intent in ("dashboard_info", "performance_info", "exam_info", "greeting"):
        data["progress"] = _progress_dict(user)
        data["practice_stats"] = user.practice_stats or {}
        data["exam_stats"] = user.exam_stats or {}
        data["recent_exams"] = (user.exam_history or [])[-5:]
    if intent in ("exam_info", "timetable_info", "dashboard_info"):
        data["upcoming_exams"] = upcoming_exams()
    if intent == "timetable_info":
        data["live_sessions"] = upcoming_live_sessions()
    if intent == "performance_info":
        recent = AdaptiveExam.query.filter_by(user_id=user.id, status="completed") \
            .order_by(AdaptiveExam.created_at.desc()).limit(5).all()
        data["recent_adaptive"] = [
            {"accuracy": e.accuracy, "final_ability": e.final_ability, "xp": e.xp_earned}
            for e in recent
        ]
    return data


def dashboard_data(user: User) -> Dict:
    """Everything the chatbot widget shows for a signed-in user"""
    practice_count = PracticeSession.query.filter_by(user_id=user.id, status="completed").count()
    return {
        "user": user.to_dict(),
        "progress": _progress_dict(user),
        "practice_stats": user.practice_stats or {},
        "practice_sessions": practice_count,
        "exam_stats": user.exam_stats or {},
        "recent_exams": (user.exam_history or [])[-5:],
        "upcoming_exams": upcoming_exams(),
        "upcoming_live_sessions": upcoming_live_sessions(),
    }


# ============================================================================
# Responses
# ============================================================================

def template_response(intent: str, user: Optional[User], context: Dict) -> str:
    """Deterministic reply used when Gemini is unavailable"""
    if user is None:
        return context.get("message", "Welcome to LearningSphere! Log in for personalised help.")

    name = _display_name(user)
    progress = context.get("progress") or {}
    practice = context.get("practice_stats") or {}
    exams = context.get("exam_stats") or {}

    if intent == "dashboard_info":
        return (f"Here's your overview, {name}: level {progress.get('current_level', 1)}, "
                f"{progress.get('experience_points', 0)} XP, {len(progress.get('badges', []))} badges, "
                f"and {practice.get('totalSessions', 0)} practice sessions completed.")
    if intent == "performance_info":
        return (f"{name}, your average exam score is {exams.get('averagePercentage', 0)}% across "
                f"{exams.get('totalExams', 0)} exams, and your practice accuracy averages "
                f"{practice.get('averageAccuracy', 0)}%.")
    if intent == "exam_info":
        upcoming = context.get("upcoming_exams") or []
        if upcoming:
            titles = ", ".join(e["title"] for e in upcoming[:3])
            return f"Upcoming exams: {titles}. Practice sessions are a great way to prepare!"
        return "There are no upcoming scheduled exams. Try a practice session or an adaptive exam."
    if intent == "timetable_info":
        sessions = context.get("live_sessions") or []
        if sessions:
            titles = ", ".join(s["title"] for s in sessions[:3])
            return f"Upcoming live sessions: {titles}."
        return "No live sessions are scheduled right now."
    if intent == "help":
        return ("I can show your dashboard, explain your exam and practice performance, list "
                "upcoming exams and live sessions, and suggest what to study next.")
    return f"I'm here to help with your learning on LearningSphere, {name}. What would you like to know?"


def _user_context(user: Optional[User]) -> Dict:
    if user is None:
        return {"name": "Guest", "role": "guest"}
    return {"name": _display_name(user), "role": user.role}


class ChatbotService:
    def respond(self, message: str, user: Optional[User], extra_context: Dict = None) -> Dict:
        simple = simple_response(message, user)
        if simple:
            return simple

        intent = detect_intent(message)
        context = gather_context(intent, user)
        suggestions = smart_suggestions(intent, user, context)

        prompt = (
            f"User: {json.dumps(_user_context(user))}\n"
            f"Detected intent: {intent}\n"
            f"Platform data: {json.dumps(context, default=str)[:8000]}\n"
            f"Client context: {json.dumps(extra_context or {}, default=str)[:2000]}\n\n"
            f"User message: {message}"
        )
        reply = get_gemini_service().generate(
            prompt, temperature=0.7, max_output_tokens=800, system_instruction=SYSTEM_PROMPT
        )
        if not reply:
            logger.info(f"[Chatbot] Template reply for intent {intent}")
            reply = template_response(intent, user, context)

        return {"response": reply, "intent": intent, "suggestions": suggestions}


_chatbot_service: Optional[ChatbotService] = None


def get_chatbot_service() -> ChatbotService:
    global _chatbot_service
    if _chatbot_service is None:
        _chatbot_service = ChatbotService()
    return _chatbot_service
