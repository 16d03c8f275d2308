"""
Tests for Live Session Routes
"""
import io
from datetime import datetime, timedelta

from learningsphere import db, mail
from learningsphere.models.user import Progress


def _create(client, headers, **overrides):
    body = {
        'title': 'Quadratic equations clinic',
        'description': 'Bring your homework',
        'scheduledTime': (datetime.utcnow() + timedelta(hours=2)).isoformat() + 'Z',
        'maxParticipants': 5,
    }
    body.update(overrides)
    response = client.post('/api/livesessions', headers=headers, json=body)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['session']


class TestLiveSessionCreate:

    def test_tutor_creates_session_and_gets_email(self, client, tutor_headers, tutor):
        with mail.record_messages() as outbox:
            response = client.post('/api/livesessions', headers=tutor_headers, json={
                'title': 'Algebra office hours',
                'scheduledTime': (datetime.utcnow() + timedelta(days=1)).isoformat() + 'Z',
            })

        assert response.status_code == 201
        data = response.get_json()
        assert data['emailSent'] is True
        assert data['session']['session_id'].startswith('session_')
        assert data['session']['tutor']['id'] == tutor.id
        assert data['session']['max_participants'] == 10

        assert len(outbox) == 1
        assert outbox[0].recipients == [tutor.email]
        assert data['session']['session_id'] in outbox[0].body

    def test_learner_cannot_create(self, client, auth_headers):
        response = client.post('/api/livesessions', headers=auth_headers, json={'title': 'Mine'})

        assert response.status_code == 403

    def test_title_required(self, client, tutor_headers):
        response = client.post('/api/livesessions', headers=tutor_headers, json={'title': '  '})

        assert response.status_code == 400

    def test_listing(self, client, tutor_headers, auth_headers):
        session = _create(client, tutor_headers)

        tutor_view = client.get('/api/livesessions', headers=tutor_headers).get_json()['sessions']
        learner_view = client.get('/api/livesessions', headers=auth_headers).get_json()['sessions']

        assert [s['session_id'] for s in tutor_view] == [session['session_id']]
        assert [s['session_id'] for s in learner_view] == [session['session_id']]

        client.post(f"/api/livesessions/{session['session_id']}/start", headers=tutor_headers)
        learner_view = client.get('/api/livesessions', headers=auth_headers).get_json()['sessions']
        assert learner_view == []


class TestLiveSessionParticipation:

    def test_learner_join_awards_xp(self, client, tutor_headers, auth_headers, learner):
        session = _create(client, tutor_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/join", headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['session']['participants'][0]['user_id'] == learner.id

        progress = Progress.query.filter_by(user_id=learner.id).first()
        assert progress.live_sessions_attended == 1
        # Join XP plus the noobie badge reward
        assert progress.experience_points == 200

        again = client.post(f"/api/livesessions/{session['session_id']}/join", headers=auth_headers)
        assert again.get_json()['message'] == 'Already joined'
        assert progress.live_sessions_attended == 1

    def test_rejoin_after_leave_awards_nothing(self, client, tutor_headers, auth_headers, learner):
        session = _create(client, tutor_headers)
        url = f"/api/livesessions/{session['session_id']}"

        client.post(f'{url}/join', headers=auth_headers)
        client.post(f'{url}/leave', headers=auth_headers)
        response = client.post(f'{url}/join', headers=auth_headers)

        assert response.status_code == 200
        assert response.get_json()['newBadges'] == []
        assert [p['user_id'] for p in response.get_json()['session']['participants']] == [learner.id]

        progress = Progress.query.filter_by(user_id=learner.id).first()
        assert progress.live_sessions_attended == 1
        assert progress.experience_points == 200

    def test_join_full_session(self, client, tutor_headers, auth_headers, other_headers):
        session = _create(client, tutor_headers, maxParticipants=1)
        client.post(f"/api/livesessions/{session['session_id']}/join", headers=auth_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/join", headers=other_headers)

        assert response.status_code == 400
        assert 'full' in response.get_json()['error']

    def test_join_unscheduled_inactive_session(self, client, tutor_headers, auth_headers):
        session = _create(client, tutor_headers, scheduledTime=None)

        response = client.post(f"/api/livesessions/{session['session_id']}/join", headers=auth_headers)

        assert response.status_code == 400

    def test_admin_cannot_join(self, client, tutor_headers, admin_headers):
        session = _create(client, tutor_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/join", headers=admin_headers)

        assert response.status_code == 403

    def test_leave(self, client, tutor_headers, auth_headers):
        session = _create(client, tutor_headers)
        url = f"/api/livesessions/{session['session_id']}"

        assert client.post(f'{url}/leave', headers=auth_headers).status_code == 400

        client.post(f'{url}/join', headers=auth_headers)
        assert client.post(f'{url}/leave', headers=auth_headers).status_code == 200

        participants = client.get(url, headers=auth_headers).get_json()['session']['participants']
        assert participants == []

    def test_unknown_session(self, client, auth_headers):
        response = client.post('/api/livesessions/session_missing/join', headers=auth_headers)

        assert response.status_code == 404


class TestLiveSessionHosting:

    def test_start_and_end_credit_participants(self, client, tutor_headers, auth_headers, learner):
        session = _create(client, tutor_headers)
        url = f"/api/livesessions/{session['session_id']}"
        client.post(f'{url}/join', headers=auth_headers)

        response = client.post(f'{url}/start', headers=tutor_headers)
        assert response.status_code == 200
        assert response.get_json()['session']['is_active'] is True

        response = client.post(f'{url}/end', headers=tutor_headers)
        assert response.status_code == 200
        data = response.get_json()
        assert data['session']['is_active'] is False
        assert data['session']['ended_at'] is not None

        progress = Progress.query.filter_by(user_id=learner.id).first()
        assert progress.sessions_completed == 1
        assert progress.live_sessions_attended == 2

        assert client.post(f'{url}/end', headers=tutor_headers).status_code == 400
        assert client.post(f'{url}/start', headers=tutor_headers).status_code == 400

    def test_only_host_can_start(self, client, tutor_headers, other_headers, other_learner):
        other_learner.is_tutor = True
        db.session.commit()
        session = _create(client, tutor_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/start", headers=other_headers)

        assert response.status_code == 403

    def test_learner_cannot_start(self, client, tutor_headers, auth_headers):
        session = _create(client, tutor_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/start", headers=auth_headers)

        assert response.status_code == 403


class TestLiveSessionChat:

    def test_participants_chat(self, client, tutor_headers, auth_headers, other_headers):
        session = _create(client, tutor_headers)
        url = f"/api/livesessions/{session['session_id']}/chat"

        assert client.post(url, headers=auth_headers, json={'message': 'hi'}).status_code == 403

        client.post(f"/api/livesessions/{session['session_id']}/join", headers=auth_headers)
        response = client.post(url, headers=auth_headers, json={'message': '  Is this recorded?  '})
        assert response.status_code == 201
        assert response.get_json()['message']['username'] == 'Lena Learner'

        client.post(url, headers=tutor_headers, json={'message': 'Yes it is'})
        messages = client.get(url, headers=auth_headers).get_json()['messages']
        assert [m['message'] for m in messages] == ['Is this recorded?', 'Yes it is']

        assert client.get(url, headers=other_headers).status_code == 403
        assert client.post(url, headers=auth_headers, json={'message': ''}).status_code == 400


class TestLiveSessionTranscription:

    def test_requires_audio_file(self, client, tutor_headers):
        session = _create(client, tutor_headers)

        response = client.post(f"/api/livesessions/{session['session_id']}/transcribe",
                               headers=tutor_headers, data={}, content_type='multipart/form-data')

        assert response.status_code == 400

    def test_speech_service_unavailable(self, client, tutor_headers):
        session = _create(client, tutor_headers)

        response = client.post(
            f"/api/livesessions/{session['session_id']}/transcribe",
            headers=tutor_headers,
            data={'audio': (io.BytesIO(b'ID3fake-audio'), 'lecture.mp3'), 'language': 'en-US'},
            content_type='multipart/form-data',
        )

        assert response.status_code == 502
        assert 'not configured' in response.get_json()['error']
