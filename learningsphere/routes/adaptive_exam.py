"""
Adaptive Exam Routes - IRT-driven exams served by the external adaptive engine

The engine owns item selection and ability estimation; this service keeps
the per-user exam record, timing, XP and badges.
"""
import logging

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.adaptive_exam import AdaptiveExam, FINISHED_STATUSES
from learningsphere.services.adaptive_engine import get_adaptive_engine, format_question, AdaptiveEngineError
from learningsphere.services.adaptive_scoring import calculate_xp, award_adaptive_badges
from learningsphere.services.authorization_service import require_auth
from learningsphere.services.gamification import add_experience, add_progress_xp, get_or_create_progress
from learningsphere.utils.time_utils import parse_seconds

logger = logging.getLogger(__name__)

adaptive_bp = Blueprint("adaptive_exam", __name__, url_prefix="/api/adaptive-exam")

MIN_DURATION = 5
MAX_DURATION = 120
DEFAULT_DURATION = 20


def _active_exam(user_id: str, session_id: str = None):
    query = AdaptiveExam.query.filter_by(user_id=user_id, status="active")
    if session_id:
        query = query.filter_by(session_id=session_id)
    return query.order_by(AdaptiveExam.start_time.desc()).first()


def _expire_if_overdue(exam: AdaptiveExam) -> bool:
    """Mark an active exam past its duration as time_expired"""
    if exam.status == "active" and exam.time_remaining() <= 0:
        exam.complete(status="time_expired")
        logger.info(f"[AdaptiveExam] Session {exam.session_id} expired")
        return True
    return False


def _finish(exam: AdaptiveExam, final_ability: float = None) -> dict:
    """Complete the exam and award XP and badges"""
    exam.complete(final_ability=final_ability)
    exam.xp_earned = calculate_xp(exam)

    user = g.current_user
    add_experience(user, exam.xp_earned, source="exams")
    progress = get_or_create_progress(user)
    level_up = add_progress_xp(progress, exam.xp_earned)
    db.session.flush()
    exam.badges_earned = award_adaptive_badges(progress, exam)

    logger.info(f"[AdaptiveExam] Session {exam.session_id} completed: "
                f"{exam.correct_answers}/{exam.total_questions}, ability {exam.final_ability}")

    results = exam.to_dict()
    results["levelUp"] = level_up
    results["newBadges"] = exam.badges_earned
    return results


@adaptive_bp.route("/active-session", methods=["GET"])
@require_auth
def get_active_session():
    exam = _active_exam(g.user_id)
    if exam and _expire_if_overdue(exam):
        db.session.commit()
        exam = None

    if not exam:
        return jsonify({"hasActiveSession": False}), 200

    return jsonify({
        "hasActiveSession": True,
        "session": {
            "sessionId": exam.session_id,
            "examNumber": exam.exam_number,
            "duration": exam.duration,
            "startTime": exam.start_time.isoformat(),
            "timeRemaining": exam.time_remaining(),
            "questionsAnswered": exam.total_questions or 0,
            "currentAbility": exam.current_ability,
        }
    }), 200


@adaptive_bp.route("/start", methods=["POST"])
@require_auth
def start_exam():
    data = request.get_json(silent=True) or {}

    try:
        duration = int(data.get("duration") or DEFAULT_DURATION)
    except (TypeError, ValueError):
        return jsonify({"error": "Duration must be a number of minutes"}), 400
    if not MIN_DURATION <= duration <= MAX_DURATION:
        return jsonify({"error": f"Duration must be between {MIN_DURATION} and {MAX_DURATION} minutes"}), 400

    existing = _active_exam(g.user_id)
    if existing and not _expire_if_overdue(existing):
        return jsonify({
            "error": "You already have an active adaptive exam",
            "sessionId": existing.session_id
        }), 400

    initial_ability = AdaptiveExam.last_user_ability(g.user_id)

    try:
        started = get_adaptive_engine().start(g.user_id)
    except AdaptiveEngineError as e:
        db.session.commit()
        return jsonify({"error": str(e)}), 502

    exam = AdaptiveExam(
        user_id=g.user_id,
        session_id=started["session_id"],
        status="active",
        exam_number=AdaptiveExam.completed_count(g.user_id) + 1,
        duration=duration,
        initial_ability=initial_ability,
        current_ability=initial_ability,
        responses=[],
    )
    db.session.add(exam)
    db.session.commit()

    logger.info(f"[AdaptiveExam] User {g.user_id} started session {exam.session_id}")

    return jsonify({
        "sessionId": exam.session_id,
        "question": format_question(started.get("question")),
        "userAbility": initial_ability,
        "duration": exam.duration,
        "timeRemaining": exam.time_remaining(),
        "examNumber": exam.exam_number
    }), 201


@adaptive_bp.route("/submit", methods=["POST"])
@require_auth
def submit_answer():
    data = request.get_json(silent=True) or {}
    session_id = data.get("sessionId")
    question_id = data.get("questionId")
    answer = data.get("answer")

    if not session_id or question_id is None or answer is None:
        return jsonify({"error": "sessionId, questionId and answer are required"}), 400

    exam = _active_exam(g.user_id, session_id)
    if not exam:
        return jsonify({"error": "No active exam session found"}), 404

    if _expire_if_overdue(exam):
        db.session.commit()
        return jsonify({"error": "Exam time has expired", "timeExpired": True,
                        "results": exam.to_dict()}), 400

    try:
        time_spent = parse_seconds(data.get("timeSpent"))
    except (TypeError, ValueError):
        return jsonify({"error": "timeSpent must be a number of seconds"}), 400

    try:
        result = get_adaptive_engine().submit(session_id, question_id, answer, time_spent)
    except AdaptiveEngineError as e:
        return jsonify({"error": str(e)}), 502

    ability_after = result.get("user_ability", exam.current_ability)
    exam.add_response({
        "question_id": question_id,
        "question": data.get("questionText"),
        "options": data.get("questionOptions"),
        "difficulty": data.get("difficulty"),
        "difficulty_numeric": data.get("difficultyNumeric"),
        "user_answer": answer,
        "correct_answer": result.get("correct_answer"),
        "is_correct": bool(result.get("is_correct")),
        "time_spent": float(time_spent),
        "ability_before": exam.current_ability,
        "ability_after": ability_after,
    })

    if result.get("quiz_complete"):
        results = _finish(exam, final_ability=ability_after)
        db.session.commit()
        return jsonify({
            "isCorrect": bool(result.get("is_correct")),
            "correctAnswer": result.get("correct_answer"),
            "quizComplete": True,
            "results": results
        }), 200

    db.session.commit()

    return jsonify({
        "isCorrect": bool(result.get("is_correct")),
        "correctAnswer": result.get("correct_answer"),
        "currentAbility": exam.current_ability,
        "nextQuestion": format_question(result.get("next_question")),
        "quizComplete": False,
        "timeRemaining": exam.time_remaining(),
        "progress": {
            "questionsAnswered": exam.total_questions,
            "correctAnswers": exam.correct_answers,
            "accuracy": exam.accuracy
        }
    }), 200


@adaptive_bp.route("/resume/<session_id>", methods=["GET"])
@require_auth
def resume_exam(session_id):
    exam = _active_exam(g.user_id, session_id)
    if not exam:
        return jsonify({"error": "No active exam session found"}), 404

    if _expire_if_overdue(exam):
        db.session.commit()
        return jsonify({"error": "Exam time has expired", "timeExpired": True}), 400

    try:
        resumed = get_adaptive_engine().resume(session_id)
    except AdaptiveEngineError as e:
        logger.warning(f"[AdaptiveExam] Could not resume {session_id}: {e}")
        return jsonify({"error": "Session could not be resumed", "requiresNewSession": True}), 400

    return jsonify({
        "sessionId": exam.session_id,
        "question": format_question(resumed.get("question")),
        "currentAbility": exam.current_ability,
        "timeRemaining": exam.time_remaining(),
        "progress": {
            "questionsAnswered": exam.total_questions or 0,
            "correctAnswers": exam.correct_answers or 0,
            "accuracy": exam.accuracy or 0
        }
    }), 200


@adaptive_bp.route("/analytics/<session_id>", methods=["GET"])
@require_auth
def get_analytics(session_id):
    exam = AdaptiveExam.query.filter_by(user_id=g.user_id, session_id=session_id).first()
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    responses = exam.responses or []
    progression = [{"questionNumber": 0, "ability": exam.initial_ability}]
    progression += [
        {"questionNumber": i, "ability": r.get("ability_after")}
        for i, r in enumerate(responses, 1)
    ]

    data = exam.to_dict(include_responses=True)
    data["abilityProgression"] = progression
    return jsonify({"analytics": data}), 200


@adaptive_bp.route("/history", methods=["GET"])
@require_auth
def get_history():
    limit = min(max(request.args.get("limit", 10, type=int), 1), 100)
    skip = max(request.args.get("skip", 0, type=int), 0)
    status = request.args.get("status")
    statuses = [s.strip() for s in status.split(",") if s.strip()] if status else list(FINISHED_STATUSES)

    query = AdaptiveExam.query.filter(
        AdaptiveExam.user_id == g.user_id,
        AdaptiveExam.status.in_(statuses)
    )
    total = query.count()
    exams = query.order_by(AdaptiveExam.start_time.desc()).offset(skip).limit(limit).all()

    return jsonify({
        "exams": [e.to_dict() for e in exams],
        "total": total,
        "hasMore": skip + len(exams) < total
    }), 200


@adaptive_bp.route("/end/<session_id>", methods=["PUT"])
@require_auth
def end_exam(session_id):
    """Complete with results when asked to save, otherwise abandon"""
    exam = _active_exam(g.user_id, session_id)
    if not exam:
        return jsonify({"error": "No active exam session found"}), 404

    data = request.get_json(silent=True) or {}

    if data.get("saveResults") and exam.responses:
        results = _finish(exam)
        db.session.commit()
        return jsonify({"message": "Exam completed", "results": results}), 200

    exam.complete(status="abandoned")
    db.session.commit()
    logger.info(f"[AdaptiveExam] Session {exam.session_id} abandoned")
    return jsonify({"message": "Exam abandoned", "sessionId": exam.session_id}), 200


@adaptive_bp.route("/stats", methods=["GET"])
@require_auth
def get_stats():
    exams = AdaptiveExam.query.filter_by(user_id=g.user_id, status="completed").all()
    progress = get_or_create_progress(g.current_user)
    db.session.commit()

    total = len(exams)
    abilities = [e.final_ability for e in exams if e.final_ability is not None]

    return jsonify({
        "stats": {
            "totalExams": total,
            "totalQuestions": sum(e.total_questions or 0 for e in exams),
            "averageAccuracy": round(sum(e.accuracy or 0 for e in exams) / total, 2) if total else 0,
            "bestAbility": max(abilities) if abilities else None,
            "currentAbility": AdaptiveExam.last_user_ability(g.user_id),
            "totalXp": sum(e.xp_earned or 0 for e in exams),
            "badges": [b for b in progress.badges or [] if b.get("category") == "adaptive_exam"]
        }
    }), 200
