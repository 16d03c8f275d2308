"""
Pytest Configuration for LearningSphere Tests
"""
import os
import pytest

os.environ["RATE_LIMIT_ENABLED"] = "false"

from learningsphere import create_app, db
from learningsphere.models.question import Question
from learningsphere.models.user import User
from learningsphere.services.rate_limiter import reset_rate_limiter
from learningsphere.utils.jwt_handler import create_tokens

TEST_PASSWORD = "testpassword123"


@pytest.fixture(scope='function')
def app(monkeypatch):
    """Create application with a fresh in-memory database"""
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    reset_rate_limiter()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'SECRET_KEY': 'test-secret-key',
        'JWT_SECRET': 'test-jwt-secret-key-32-chars-min',
        'REFRESH_TOKEN_SECRET': 'test-refresh-secret-32-chars-min',
        'GEMINI_API_KEY': None,
        'RECAPTCHA_SECRET_KEY': None,
        'MAIL_SUPPRESS_SEND': True,
        'FRONTEND_URL': 'http://localhost:5173',
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Test client"""
    return app.test_client()


def make_user(email, name, role="learner", is_tutor=False):
    user = User(
        email=email,
        name=name,
        role=role,
        is_tutor=is_tutor or role == "tutor",
        practice_history=[],
        practice_stats={},
        practice_badges=[],
        exam_history=[],
        exam_stats={},
    )
    user.set_password(TEST_PASSWORD)
    db.session.add(user)
    db.session.commit()
    return user


def headers_for(user):
    access_token, _ = create_tokens(str(user.id), user.role)
    return {'Authorization': f'Bearer {access_token}'}


@pytest.fixture(scope='function')
def learner(app):
    return make_user('learner@example.com', 'Lena Learner')


@pytest.fixture(scope='function')
def tutor(app):
    return make_user('tutor@example.com', 'Theo Tutor', role='tutor')


@pytest.fixture(scope='function')
def admin(app):
    return make_user('admin@example.com', 'Ada Admin', role='admin')


@pytest.fixture(scope='function')
def other_learner(app):
    return make_user('other@example.com', 'Omar Other')


@pytest.fixture(scope='function')
def other_headers(other_learner):
    return headers_for(other_learner)


@pytest.fixture(scope='function')
def auth_headers(learner):
    """Learner auth headers with a valid token"""
    return headers_for(learner)


@pytest.fixture(scope='function')
def tutor_headers(tutor):
    return headers_for(tutor)


@pytest.fixture(scope='function')
def admin_headers(admin):
    return headers_for(admin)


@pytest.fixture(scope='function')
def make_questions(app):
    """Factory seeding active questions at a difficulty tier"""
    def _make(difficulty, count=1, answer='a'):
        questions = []
        for i in range(count):
            question = Question(
                question_text=f'{difficulty} question {i + 1}',
                option_a='Alpha',
                option_b='Beta',
                option_c='Gamma',
                option_d='Delta',
                answer=answer,
                difficulty=difficulty,
                tags='algebra, basics',
                is_active=True,
                total_attempts=0,
                correct_attempts=0,
            )
            db.session.add(question)
            questions.append(question)
        db.session.commit()
        return questions
    return _make
