"""
Gamification Service - XP, levels, badges, and streaks

Two ledgers are maintained:
- Progress (per user): session counters, XP, level, badge list, streak
- User.experience: XP broken down by source (practice vs exams)
"""
import logging
import math
from datetime import datetime
from typing import Dict, List, Optional

from learningsphere import db
from learningsphere.models.user import User, Progress

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 1000

# rule: (kind, threshold); "manual" badges are only awarded directly
BADGES = {
    "noobie": {"name": "Noobie", "rule": ("xp", 0), "xp_reward": 50},
    "early-bird": {"name": "Early Bird", "rule": ("xp", 500), "xp_reward": 100},
    "expert": {"name": "Expert", "rule": ("xp", 2000), "xp_reward": 200},
    "master": {"name": "Master", "rule": ("xp", 5000), "xp_reward": 500},
    "first-session": {"name": "First Session", "rule": ("sessions", 1), "xp_reward": 25},
    "session-warrior": {"name": "Session Warrior", "rule": ("sessions", 10), "xp_reward": 150},
    "session-champion": {"name": "Session Champion", "rule": ("sessions", 50), "xp_reward": 300},
    "live-enthusiast": {"name": "Live Enthusiast", "rule": ("live_sessions", 5), "xp_reward": 100},
    "consistent-learner": {"name": "Consistent Learner", "rule": ("streak", 7), "xp_reward": 200},
    "time-master": {"name": "Time Master", "rule": ("hours", 100), "xp_reward": 400},
    "perfect-score": {"name": "Perfect Score", "rule": ("manual", None), "xp_reward": 150},
    "speed-demon": {"name": "Speed Demon", "rule": ("manual", None), "xp_reward": 100},
}

PRACTICE_MILESTONES = [
    (1, "First Practice"),
    (10, "Practice Warrior I"),
    (25, "Practice Warrior II"),
    (50, "Practice Warrior III"),
    (100, "Practice Legend"),
]

PRACTICE_STREAK_ACCURACY = 50


def level_for(xp: int) -> int:
    return (xp or 0) // XP_PER_LEVEL + 1


# ============================================================================
# Progress (badges and sessions)
# ============================================================================

def get_or_create_progress(user: User) -> Progress:
    progress = Progress.query.filter_by(user_id=user.id).first()
    if progress is None:
        progress = Progress(
            user_id=user.id,
            sessions_completed=0,
            live_sessions_attended=0,
            normal_sessions_completed=0,
            total_hours=0.0,
            current_level=1,
            experience_points=0,
            badges=[],
            streak_current=0,
            streak_longest=0,
        )
        db.session.add(progress)
        db.session.flush()
    return progress


def _rule_met(progress: Progress, kind: str, threshold) -> bool:
    if kind == "xp":
        return (progress.experience_points or 0) >= threshold
    if kind == "sessions":
        return (progress.sessions_completed or 0) >= threshold
    if kind == "live_sessions":
        return (progress.live_sessions_attended or 0) >= threshold
    if kind == "streak":
        return (progress.streak_current or 0) >= threshold
    if kind == "hours":
        return (progress.total_hours or 0) >= threshold
    return False


def add_progress_xp(progress: Progress, xp: int) -> bool:
    """Add XP to progress; returns True when the level went up"""
    old_level = progress.current_level or 1
    progress.experience_points = (progress.experience_points or 0) + int(xp)
    progress.current_level = max(old_level, level_for(progress.experience_points))
    return progress.current_level > old_level


def award_badge(progress: Progress, badge_id: str, name: str = None,
                xp_reward: Optional[int] = None, category: str = None) -> Optional[Dict]:
    """Award one badge if not yet held; XP reward defaults to the badge table"""
    if progress.has_badge(badge_id):
        return None

    definition = BADGES.get(badge_id, {})
    badge = {
        "badge_id": badge_id,
        "name": name or definition.get("name", badge_id),
        "earned_at": datetime.utcnow().isoformat(),
    }
    if category:
        badge["category"] = category

    progress.badges = list(progress.badges or []) + [badge]
    reward = definition.get("xp_reward", 0) if xp_reward is None else xp_reward
    if reward:
        add_progress_xp(progress, reward)
    logger.info(f"[Gamification] Badge {badge_id} awarded to {progress.user_id}")
    return badge


def check_and_award_badges(progress: Progress) -> List[Dict]:
    """Award every rule-based badge the progress now qualifies for"""
    new_badges = []
    awarded = True
    # XP rewards can unlock XP-threshold badges, so loop until stable
    while awarded:
        awarded = False
        for badge_id, definition in BADGES.items():
            kind, threshold = definition["rule"]
            if kind == "manual" or progress.has_badge(badge_id):
                continue
            if _rule_met(progress, kind, threshold):
                new_badges.append(award_badge(progress, badge_id))
                awarded = True
    progress.current_level = max(progress.current_level or 1, level_for(progress.experience_points))
    return new_badges


def update_streak(progress: Progress, now: datetime = None):
    """Consecutive-day activity streak"""
    now = now or datetime.utcnow()
    last = progress.last_activity

    if last is None:
        progress.streak_current = 1
    else:
        gap = (now.date() - last.date()).days
        if gap == 0:
            pass
        elif gap == 1:
            progress.streak_current = (progress.streak_current or 0) + 1
        else:
            progress.streak_current = 1

    progress.streak_longest = max(progress.streak_longest or 0, progress.streak_current or 0)
    progress.last_activity = now


def complete_session(progress: Progress, hours: float = 0.0, live: bool = False) -> List[Dict]:
    """Record a finished tutoring session and award its XP"""
    progress.sessions_completed = (progress.sessions_completed or 0) + 1
    if live:
        progress.live_sessions_attended = (progress.live_sessions_attended or 0) + 1
    else:
        progress.normal_sessions_completed = (progress.normal_sessions_completed or 0) + 1
    progress.total_hours = (progress.total_hours or 0.0) + (hours or 0.0)

    add_progress_xp(progress, 50 + math.floor(25 * (hours or 0.0)))
    update_streak(progress)
    return check_and_award_badges(progress)


# ============================================================================
# User experience ledger
# ============================================================================

def add_experience(user: User, xp: int, source: str = "practice") -> Dict:
    """Add XP to the user's per-source ledger; returns the updated ledger"""
    ledger = dict(user.experience or {"total": 0, "from_practice": 0, "from_exams": 0, "level": 1})
    ledger["total"] = ledger.get("total", 0) + int(xp)
    if source == "practice":
        ledger["from_practice"] = ledger.get("from_practice", 0) + int(xp)
    elif source == "exams":
        ledger["from_exams"] = ledger.get("from_exams", 0) + int(xp)
    ledger["level"] = level_for(ledger["total"])
    user.experience = ledger
    return ledger


# ============================================================================
# Practice statistics
# ============================================================================

def calculate_practice_xp(accuracy: float, total_questions: int, streak: int) -> int:
    xp = 10

    if accuracy >= 90:
        xp += 50
    elif accuracy >= 80:
        xp += 40
    elif accuracy >= 70:
        xp += 30
    elif accuracy >= 60:
        xp += 20
    elif accuracy >= 50:
        xp += 10

    xp += (total_questions // 5) * 5
    xp += min(streak * 2, 20)
    return xp


def practice_stats(history: List[Dict]) -> Dict:
    """Aggregate practice history into totals and accuracy streaks"""
    total_sessions = len(history)
    total_questions = sum(h.get("total_questions", 0) for h in history)
    total_correct = sum(h.get("correct_answers", 0) for h in history)
    average_accuracy = (
        round(sum(h.get("accuracy", 0) for h in history) / total_sessions, 2)
        if total_sessions else 0
    )

    current_streak = 0
    for entry in reversed(history):
        if entry.get("accuracy", 0) >= PRACTICE_STREAK_ACCURACY:
            current_streak += 1
        else:
            break

    longest_streak = 0
    running = 0
    for entry in history:
        if entry.get("accuracy", 0) >= PRACTICE_STREAK_ACCURACY:
            running += 1
            longest_streak = max(longest_streak, running)
        else:
            running = 0

    return {
        "totalSessions": total_sessions,
        "totalQuestionsAnswered": total_questions,
        "totalCorrectAnswers": total_correct,
        "averageAccuracy": average_accuracy,
        "totalXpEarned": sum(h.get("xp_earned", 0) for h in history),
        "currentStreak": current_streak,
        "longestStreak": longest_streak,
    }


def award_practice_badges(user: User) -> List[Dict]:
    """Session-count milestone badges for practice"""
    total = len(user.practice_history or [])
    held = {b.get("name") for b in (user.practice_badges or [])}
    new_badges = [
        {"name": name, "milestone": threshold, "earned_at": datetime.utcnow().isoformat()}
        for threshold, name in PRACTICE_MILESTONES
        if total >= threshold and name not in held
    ]
    if new_badges:
        user.practice_badges = list(user.practice_badges or []) + new_badges
    return new_badges


def record_practice_result(user: User, entry: Dict, xp: int) -> Dict:
    """
    Fold a finished practice or sectional session into the user's records.

    Returns a summary with new badges (practice and progress) and level change.
    """
    user.practice_history = list(user.practice_history or []) + [entry]
    user.practice_stats = practice_stats(user.practice_history)
    practice_badges = award_practice_badges(user)
    add_experience(user, xp, source="practice")

    progress = get_or_create_progress(user)
    level_up = add_progress_xp(progress, xp)
    progress.sessions_completed = (progress.sessions_completed or 0) + 1
    update_streak(progress)
    progress_badges = check_and_award_badges(progress)

    return {
        "new_badges": practice_badges + progress_badges,
        "level_up": level_up,
        "level": progress.current_level,
    }


def record_exam_result(user: User, entry: Dict):
    """Append a scheduled-exam result to the user's history and recompute stats"""
    history = list(user.exam_history or []) + [entry]
    user.exam_history = history

    total = len(history)
    passed = sum(1 for h in history if h.get("passed"))
    scores = [h.get("score", 0) for h in history]
    percentages = [h.get("percentage", 0) for h in history]
    user.exam_stats = {
        "totalExams": total,
        "passed": passed,
        "failed": total - passed,
        "averageScore": round(sum(scores) / total, 2) if total else 0,
        "averagePercentage": round(sum(percentages) / total, 2) if total else 0,
        "bestScore": max(percentages) if percentages else 0,
        "totalExamTime": sum(h.get("time_taken", 0) for h in history),
    }
