"""
Tests for Progress and Leaderboard Routes
"""
import pytest

from learningsphere import db
from learningsphere.models.user import Progress
from learningsphere.services.gamification import BADGES


def _progress(user, xp, badges=None):
    progress = Progress(user_id=user.id, experience_points=xp, current_level=xp // 1000 + 1,
                        badges=badges or [], streak_current=0)
    db.session.add(progress)
    db.session.commit()
    return progress


class TestMyProgress:

    def test_progress_created_on_first_read(self, client, auth_headers, learner):
        response = client.get('/api/progress', headers=auth_headers)

        assert response.status_code == 200
        data = response.get_json()
        assert data['progress']['user_id'] == learner.id
        assert data['progress']['current_level'] == 1
        assert len(data['available_badges']) == len(BADGES)

    def test_earned_badges_not_listed_as_available(self, client, auth_headers, learner):
        _progress(learner, 50, badges=[{'badge_id': 'noobie', 'name': 'Noobie'}])

        data = client.get('/api/progress', headers=auth_headers).get_json()

        available = [b['badge_id'] for b in data['available_badges']]
        assert 'noobie' not in available
        assert len(available) == len(BADGES) - 1


class TestLeaderboard:

    def test_ranked_by_xp_without_banned_users(self, client, auth_headers, learner, other_learner, tutor):
        _progress(learner, 1200)
        _progress(other_learner, 3000)
        _progress(tutor, 9000)
        tutor.is_banned = True
        db.session.commit()

        data = client.get('/api/progress/leaderboard', headers=auth_headers).get_json()

        board = data['leaderboard']
        assert [e['name'] for e in board] == ['Omar Other', 'Lena Learner']
        assert [e['rank'] for e in board] == [1, 2]
        assert board[0]['level'] == 4

    def test_limit(self, client, auth_headers, learner, other_learner):
        _progress(learner, 10)
        _progress(other_learner, 20)

        data = client.get('/api/progress/leaderboard?limit=1', headers=auth_headers).get_json()

        assert len(data['leaderboard']) == 1

    @pytest.mark.parametrize('limit', ['-1', '0'])
    def test_non_positive_limit_returns_one_entry(self, client, auth_headers, learner, other_learner, limit):
        _progress(learner, 10)
        _progress(other_learner, 20)

        data = client.get(f'/api/progress/leaderboard?limit={limit}', headers=auth_headers).get_json()

        assert [e['name'] for e in data['leaderboard']] == ['Omar Other']
