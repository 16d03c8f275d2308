"""
Unit Tests for Gamification Service
"""
from datetime import datetime, timedelta

import pytest

from learningsphere.models.user import Progress
from learningsphere.services.gamification import (
    BADGES, add_experience, add_progress_xp, award_badge, calculate_practice_xp,
    check_and_award_badges, complete_session, level_for, practice_stats, update_streak,
)


@pytest.fixture
def progress():
    return Progress(user_id='user-1', experience_points=0, current_level=1, badges=[],
                    sessions_completed=0, live_sessions_attended=0, normal_sessions_completed=0,
                    total_hours=0.0, streak_current=0, streak_longest=0)


class TestLevels:

    @pytest.mark.parametrize('xp,level', [(0, 1), (999, 1), (1000, 2), (4500, 5), (None, 1)])
    def test_level_for(self, xp, level):
        assert level_for(xp) == level

    def test_add_progress_xp_reports_level_up(self, progress):
        assert add_progress_xp(progress, 600) is False
        assert add_progress_xp(progress, 600) is True
        assert progress.current_level == 2


class TestBadges:

    def test_award_badge_once(self, progress):
        first = award_badge(progress, 'perfect-score')

        assert first['name'] == 'Perfect Score'
        assert progress.experience_points == 150
        assert award_badge(progress, 'perfect-score') is None
        assert progress.experience_points == 150

    def test_custom_badge_with_category(self, progress):
        badge = award_badge(progress, 'adaptive_first', name='First Adaptive Attempt',
                            xp_reward=0, category='adaptive_exam')

        assert badge['category'] == 'adaptive_exam'
        assert progress.experience_points == 0

    def test_rewards_cascade_into_xp_badges(self, progress):
        progress.experience_points = 430
        progress.sessions_completed = 1

        new_badges = check_and_award_badges(progress)

        # noobie (+50) and first-session (+25) lift XP past the early-bird threshold
        assert {b['badge_id'] for b in new_badges} == {'noobie', 'first-session', 'early-bird'}
        assert progress.experience_points == 430 + 50 + 25 + 100

    def test_manual_badges_never_auto_awarded(self, progress):
        progress.experience_points = 100000

        awarded = {b['badge_id'] for b in check_and_award_badges(progress)}

        assert 'perfect-score' not in awarded
        assert 'speed-demon' not in awarded
        assert BADGES['master']['name'] in [b['name'] for b in progress.badges]


class TestStreaks:

    def test_consecutive_days(self, progress):
        start = datetime(2024, 3, 1, 9)

        update_streak(progress, start)
        update_streak(progress, start + timedelta(hours=5))
        update_streak(progress, start + timedelta(days=1))

        assert progress.streak_current == 2
        assert progress.streak_longest == 2

    def test_gap_resets(self, progress):
        start = datetime(2024, 3, 1, 9)
        update_streak(progress, start)
        update_streak(progress, start + timedelta(days=1))

        update_streak(progress, start + timedelta(days=4))

        assert progress.streak_current == 1
        assert progress.streak_longest == 2


class TestSessions:

    def test_complete_live_session(self, progress):
        complete_session(progress, hours=2.0, live=True)

        assert progress.sessions_completed == 1
        assert progress.live_sessions_attended == 1
        assert progress.total_hours == 2.0
        # 50 + 25 per hour, then noobie and first-session rewards
        assert progress.experience_points == 100 + 50 + 25

    def test_complete_regular_session(self, progress):
        complete_session(progress)

        assert progress.normal_sessions_completed == 1
        assert progress.live_sessions_attended == 0


class TestExperienceLedger:

    def test_sources_tracked_separately(self):
        user = type('U', (), {'experience': None})()

        add_experience(user, 300, source='practice')
        ledger = add_experience(user, 800, source='exams')

        assert ledger == {'total': 1100, 'from_practice': 300, 'from_exams': 800, 'level': 2}


class TestPracticeXp:

    @pytest.mark.parametrize('accuracy,total,streak,xp', [
        (95, 10, 0, 10 + 50 + 10),
        (50, 20, 0, 10 + 10 + 20),
        (30, 4, 0, 10),
        (85, 5, 15, 10 + 40 + 5 + 20),
    ])
    def test_calculate_practice_xp(self, accuracy, total, streak, xp):
        assert calculate_practice_xp(accuracy, total, streak) == xp

    def test_practice_stats_streaks(self):
        history = [
            {'accuracy': 80, 'total_questions': 10, 'correct_answers': 8, 'xp_earned': 50},
            {'accuracy': 60, 'total_questions': 5, 'correct_answers': 3, 'xp_earned': 35},
            {'accuracy': 20, 'total_questions': 5, 'correct_answers': 1, 'xp_earned': 15},
            {'accuracy': 70, 'total_questions': 10, 'correct_answers': 7, 'xp_earned': 40},
        ]

        stats = practice_stats(history)

        assert stats['totalSessions'] == 4
        assert stats['totalQuestionsAnswered'] == 30
        assert stats['averageAccuracy'] == 57.5
        assert stats['currentStreak'] == 1
        assert stats['longestStreak'] == 2
        assert stats['totalXpEarned'] == 140

    def test_empty_history(self):
        assert practice_stats([])['averageAccuracy'] == 0
