"""
Practice Session Routes - timed adaptive practice over the question bank
"""
import logging
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.practice import PracticeSession
from learningsphere.models.question import Question
from learningsphere.services.authorization_service import require_auth
from learningsphere.services.gamification import record_practice_result
from learningsphere.services.practice_engine import first_question, pick_question, grade, step_difficulty
from learningsphere.utils.time_utils import parse_seconds

logger = logging.getLogger(__name__)

practice_bp = Blueprint("practice", __name__, url_prefix="/api/practice")

DEFAULT_DURATION = 60
XP_PER_CORRECT = 10


def _own_session(session_id: str):
    return PracticeSession.query.filter_by(id=session_id, user_id=g.user_id).first()


def _finalize(session: PracticeSession, status: str = "completed"):
    """Close the session and fold it into the user's practice records"""
    now = datetime.utcnow()
    session.status = status
    session.completed_at = now
    session.xp_earned = (session.score or 0) * XP_PER_CORRECT

    entry = {
        "session_id": session.id,
        "type": "practice",
        "date": now.isoformat(),
        "total_questions": session.total_questions or 0,
        "correct_answers": session.score or 0,
        "accuracy": session.accuracy,
        "xp_earned": session.xp_earned,
        "duration_minutes": round((now - session.start_time).total_seconds() / 60, 2),
    }
    summary = record_practice_result(g.current_user, entry, session.xp_earned)
    session.new_badges = summary["new_badges"]
    session.level_up = summary["level_up"]
    logger.info(f"[Practice] Session {session.id} {status}: {session.score}/{session.total_questions}")


def _results(session: PracticeSession) -> dict:
    questions = []
    for response in session.responses or []:
        question = Question.query.get(response["question_id"])
        questions.append({
            "question": question.to_dict(include_answer=False) if question else None,
            "user_answer": response.get("user_answer"),
            "correct_answer": response.get("correct_answer"),
            "is_correct": response.get("is_correct"),
            "time_taken": response.get("time_taken"),
            "answered": response.get("user_answer") is not None,
        })

    # A question on screen when the session ended counts as unanswered
    answered_ids = set(session.answered_question_ids or [])
    if session.current_question_id and session.current_question_id not in answered_ids:
        question = Question.query.get(session.current_question_id)
        if question:
            questions.append({
                "question": question.to_dict(include_answer=False),
                "user_answer": None,
                "correct_answer": question.answer,
                "is_correct": False,
                "time_taken": 0,
                "answered": False,
            })

    return {
        "sessionId": session.id,
        "status": session.status,
        "totalQuestions": session.total_questions or 0,
        "correctAnswers": session.score or 0,
        "accuracy": session.accuracy,
        "xpEarned": session.xp_earned or 0,
        "newBadges": session.new_badges or [],
        "levelUp": bool(session.level_up),
        "questions": questions,
    }


@practice_bp.route("/start", methods=["POST"])
@require_auth
def start_practice():
    data = request.get_json(silent=True) or {}
    duration = data.get("duration") or DEFAULT_DURATION
    try:
        duration = max(1, int(duration))
    except (TypeError, ValueError):
        return jsonify({"error": "Duration must be a number of minutes"}), 400

    question = first_question("Easy")
    if not question:
        return jsonify({"error": "No questions available"}), 404

    now = datetime.utcnow()
    session = PracticeSession(
        user_id=g.user_id,
        start_time=now,
        end_time=now + timedelta(minutes=duration),
        duration=duration,
        status="active",
        current_difficulty="Easy",
        current_question_id=question.id,
        answered_question_ids=[],
        responses=[],
        score=0,
        total_questions=0,
    )
    db.session.add(session)
    db.session.commit()

    return jsonify({
        "sessionId": session.id,
        "question": question.to_dict(include_answer=False),
        "timeRemaining": session.time_remaining(),
        "currentDifficulty": session.current_difficulty,
        "questionNumber": 1
    }), 201


@practice_bp.route("/<session_id>/next", methods=["POST"])
@require_auth
def next_question(session_id):
    """Grade the current answer and serve the next question"""
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Practice session not found"}), 404

    if session.status != "active":
        return jsonify({"error": f"Practice session is {session.status}"}), 400

    if session.is_expired():
        _finalize(session, status="expired")
        db.session.commit()
        return jsonify({"error": "Practice session has expired", "expired": True,
                        "results": _results(session)}), 400

    data = request.get_json(silent=True) or {}
    try:
        time_taken = parse_seconds(data.get("timeTaken"))
    except (TypeError, ValueError):
        return jsonify({"error": "timeTaken must be a number of seconds"}), 400

    question = Question.query.get(session.current_question_id) if session.current_question_id else None

    is_correct = None
    if question:
        response = grade(question, data.get("userAnswer"), time_taken)
        is_correct = response["is_correct"]
        session.responses = list(session.responses or []) + [response]
        session.answered_question_ids = list(session.answered_question_ids or []) + [question.id]
        session.total_questions = (session.total_questions or 0) + 1
        if is_correct:
            session.score = (session.score or 0) + 1
        session.current_difficulty = step_difficulty(session.current_difficulty, is_correct)

    upcoming = pick_question(session.current_difficulty, session.answered_question_ids)
    if not upcoming:
        session.current_question_id = None
        _finalize(session)
        db.session.commit()
        return jsonify({"completed": True, "isCorrect": is_correct, "results": _results(session)}), 200

    session.current_question_id = upcoming.id
    db.session.commit()

    return jsonify({
        "completed": False,
        "isCorrect": is_correct,
        "question": upcoming.to_dict(include_answer=False),
        "timeRemaining": session.time_remaining(),
        "currentScore": session.score or 0,
        "questionNumber": (session.total_questions or 0) + 1,
        "currentDifficulty": session.current_difficulty
    }), 200


@practice_bp.route("/<session_id>/end", methods=["POST"])
@require_auth
def end_practice(session_id):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Practice session not found"}), 404

    if session.status != "active":
        return jsonify({"error": "Practice session already ended"}), 400

    _finalize(session, status="expired" if session.is_expired() else "completed")
    db.session.commit()

    return jsonify({"completed": True, "results": _results(session)}), 200


@practice_bp.route("/results/<session_id>", methods=["GET"])
@require_auth
def get_results(session_id):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Practice session not found"}), 404

    results = _results(session)
    results["userStats"] = g.current_user.practice_stats or {}
    results["experience"] = g.current_user.experience
    return jsonify(results), 200


@practice_bp.route("/history", methods=["GET"])
@require_auth
def get_history():
    """Last 10 practice sessions"""
    sessions = PracticeSession.query.filter_by(user_id=g.user_id) \
        .order_by(PracticeSession.start_time.desc()).limit(10).all()
    return jsonify({
        "sessions": [s.to_dict() for s in sessions],
        "stats": g.current_user.practice_stats or {}
    }), 200
