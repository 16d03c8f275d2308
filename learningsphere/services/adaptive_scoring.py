"""
XP and badge rules for adaptive exams
"""
import logging
from typing import Dict, List

from learningsphere.models.adaptive_exam import AdaptiveExam
from learningsphere.services.gamification import award_badge

logger = logging.getLogger(__name__)

ADAPTIVE_BADGES = [
    {"id": "adaptive_first", "name": "First Adaptive Attempt", "threshold": 1},
    {"id": "adaptive_persistent", "name": "Persistent Learner", "threshold": 5},
    {"id": "adaptive_dedicated", "name": "Dedicated Student", "threshold": 10},
    {"id": "adaptive_master", "name": "Master Learner", "threshold": 25},
    {"id": "adaptive_legend", "name": "Adaptive Legend", "threshold": 50},
    {"id": "adaptive_accuracy_80", "name": "Accuracy Expert", "threshold": "accuracy_80"},
    {"id": "adaptive_ability_high", "name": "High Ability", "threshold": "ability_2"},
]


def calculate_xp(exam: AdaptiveExam) -> int:
    xp = 50
    xp += (exam.correct_answers or 0) * 10

    accuracy = exam.accuracy or 0
    if accuracy >= 90:
        xp += 100
    elif accuracy >= 80:
        xp += 75
    elif accuracy >= 70:
        xp += 50
    elif accuracy >= 60:
        xp += 25

    breakdown = exam.difficulty_breakdown or {}
    xp += breakdown.get("difficult", {}).get("correct", 0) * 20
    xp += breakdown.get("moderate", {}).get("correct", 0) * 10

    if exam.total_questions and (exam.average_time_per_question or 0) < 15 and accuracy >= 70:
        xp += 50

    ability = exam.final_ability or 0
    if ability >= 2.0:
        xp += 100
    elif ability >= 1.5:
        xp += 50

    return round(xp)


def award_adaptive_badges(progress, exam: AdaptiveExam) -> List[Dict]:
    """Milestone and performance badges; the exam must already be completed"""
    total = AdaptiveExam.completed_count(exam.user_id)
    new_badges = []

    for badge in ADAPTIVE_BADGES:
        threshold = badge["threshold"]
        if isinstance(threshold, int):
            qualifies = total >= threshold
        elif threshold == "accuracy_80":
            qualifies = (exam.accuracy or 0) >= 80
        else:
            qualifies = (exam.final_ability or 0) >= 2.0

        if qualifies:
            awarded = award_badge(progress, badge["id"], name=badge["name"],
                                  xp_reward=0, category="adaptive_exam")
            if awarded:
                new_badges.append(awarded)

    return new_badges
