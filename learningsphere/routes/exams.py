"""
Scheduled Exam Routes - admin-scheduled MCQ exams with a fixed window
"""
import logging
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.exam import Exam, EXAM_STATUSES, ANSWER_LETTERS, PASS_PERCENTAGE
from learningsphere.services.authorization_service import require_auth, require_role
from learningsphere.services.gamification import (
    add_experience, add_progress_xp, award_badge, check_and_award_badges,
    get_or_create_progress, record_exam_result,
)
from learningsphere.services.gemini_service import get_gemini_service, normalize_question
from learningsphere.services.rate_limiter import rate_limit
from learningsphere.utils.time_utils import parse_iso_datetime, parse_seconds

logger = logging.getLogger(__name__)

exams_bp = Blueprint("exams", __name__, url_prefix="/api/exams")

OPEN_STATUSES = ("live", "ongoing")
VISIBLE_STATUSES = ("scheduled", "live", "ongoing")
ABANDONED_AFTER = timedelta(hours=2)
XP_PER_CORRECT = 10
PASS_BONUS_XP = 100


def _validate_questions(questions):
    """Return an error message or None"""
    if not isinstance(questions, list) or not questions:
        return "Questions must be a non-empty list"
    for i, q in enumerate(questions, 1):
        if not isinstance(q, dict) or not q.get("question"):
            return f"Question {i} is missing its text"
        options = q.get("options")
        if not isinstance(options, list) or len(options) != 4:
            return f"Question {i} must have exactly 4 options"
        if str(q.get("correctAnswer", "")).strip().upper() not in ANSWER_LETTERS:
            return f"Question {i} correctAnswer must be one of A, B, C, D"
    return None


def _refresh(exams):
    for exam in exams:
        exam.refresh_status()
    db.session.commit()


@exams_bp.route("", methods=["POST"])
@require_role("admin")
@rate_limit("exam_generation")
def create_exam():
    """Schedule an exam; questions are generated when none are supplied"""
    data = request.get_json() or {}

    for field in ("title", "subject", "topic", "startTime", "duration"):
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    try:
        start_time = parse_iso_datetime(data["startTime"])
        duration = int(data["duration"])
        num_questions = int(data.get("numQuestions") or 10)
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid startTime, duration or numQuestions"}), 400

    if duration <= 0 or num_questions <= 0:
        return jsonify({"error": "Duration and numQuestions must be positive"}), 400

    difficulty = data.get("difficulty") or "medium"

    if data.get("questions"):
        error = _validate_questions(data["questions"])
        if error:
            return jsonify({"error": error}), 400
        questions = [normalize_question(q, i) for i, q in enumerate(data["questions"])]
    else:
        questions = get_gemini_service().generate_exam_questions(
            data["subject"], data["topic"], num_questions, difficulty
        )

    exam = Exam(
        title=data["title"].strip(),
        description=data.get("description"),
        subject=data["subject"],
        topic=data["topic"],
        difficulty=difficulty,
        start_time=start_time,
        end_time=Exam.window_end(start_time, duration),
        duration=duration,
        questions=questions,
        results=[],
        started_by=[],
        created_by=g.user_id,
    )
    exam.refresh_status()
    db.session.add(exam)
    db.session.commit()

    logger.info(f"[Exams] {g.user_id} scheduled exam {exam.id} with {len(questions)} questions")
    return jsonify({"message": "Exam created", "exam": exam.to_dict(include_answers=True)}), 201


@exams_bp.route("", methods=["GET"])
@require_auth
def list_exams():
    exams = Exam.query.order_by(Exam.start_time.desc()).all()
    _refresh(exams)

    if g.current_user.role == "admin":
        return jsonify({"exams": [e.to_dict(include_answers=True) for e in exams]}), 200

    visible = [
        e.to_dict(results_for=g.user_id) for e in exams
        if e.status in VISIBLE_STATUSES or e.result_for(g.user_id)
    ]
    return jsonify({"exams": visible}), 200


@exams_bp.route("/<exam_id>", methods=["GET"])
@require_auth
def get_exam(exam_id):
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404
    _refresh([exam])

    if g.current_user.role == "admin":
        return jsonify({"exam": exam.to_dict(include_answers=True)}), 200

    return jsonify({
        "exam": exam.to_dict(include_answers=exam.status == "completed", results_for=g.user_id)
    }), 200


@exams_bp.route("/<exam_id>/start", methods=["POST"])
@require_role("learner")
def start_exam(exam_id):
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    status = exam.refresh_status()
    if status not in OPEN_STATUSES:
        db.session.commit()
        return jsonify({"error": f"Exam is {status} and cannot be started"}), 400

    if exam.result_for(g.user_id):
        return jsonify({"error": "You have already submitted this exam"}), 400
    if exam.start_for(g.user_id):
        return jsonify({"error": "You have already started this exam"}), 400

    exam.started_by = list(exam.started_by or []) + [
        {"user_id": g.user_id, "started_at": datetime.utcnow().isoformat()}
    ]
    exam.status = "ongoing"
    db.session.commit()

    logger.info(f"[Exams] User {g.user_id} started exam {exam.id}")
    return jsonify({
        "message": "Exam started",
        "exam": exam.to_dict(results_for=g.user_id),
        "timeRemaining": exam.time_remaining()
    }), 200


@exams_bp.route("/<exam_id>/status", methods=["GET"])
@require_role("learner")
def get_exam_status(exam_id):
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    status = exam.refresh_status()
    db.session.commit()

    has_started = exam.start_for(g.user_id) is not None
    has_submitted = exam.result_for(g.user_id) is not None

    return jsonify({
        "status": status,
        "canStart": status in OPEN_STATUSES and not has_started and not has_submitted,
        "hasStarted": has_started,
        "hasSubmitted": has_submitted,
        "timeRemaining": exam.time_remaining()
    }), 200


@exams_bp.route("/<exam_id>/submit", methods=["POST"])
@require_role("learner")
def submit_exam(exam_id):
    """Grade a submission and award XP and badges"""
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    status = exam.refresh_status()
    if status not in OPEN_STATUSES:
        db.session.commit()
        return jsonify({"error": f"Exam is {status}; submissions are closed"}), 400

    if exam.result_for(g.user_id):
        return jsonify({"error": "You have already submitted this exam"}), 400

    data = request.get_json() or {}
    answers = data.get("answers") or {}
    if not isinstance(answers, dict):
        return jsonify({"error": "Answers must map question index to a letter"}), 400

    raw_time = data.get("timeTaken")
    try:
        time_taken = float(exam.duration * 60) if raw_time in (None, "") else parse_seconds(raw_time)
    except (TypeError, ValueError):
        return jsonify({"error": "timeTaken must be a number of seconds"}), 400

    questions = exam.questions or []
    score = sum(
        1 for i, q in enumerate(questions)
        if str(answers.get(str(i), "")).strip().upper() == q.get("correctAnswer")
    )
    total = len(questions)
    percentage = round(score / total * 100) if total else 0
    passed = percentage >= PASS_PERCENTAGE
    now = datetime.utcnow()

    result = {
        "user_id": g.user_id,
        "answers": answers,
        "score": score,
        "total": total,
        "percentage": percentage,
        "passed": passed,
        "time_taken": time_taken,
        "submitted_at": now.isoformat(),
    }
    exam.results = list(exam.results or []) + [result]

    user = g.current_user
    record_exam_result(user, {
        "exam_id": exam.id,
        "title": exam.title,
        "subject": exam.subject,
        "score": score,
        "total": total,
        "percentage": percentage,
        "passed": passed,
        "time_taken": time_taken,
        "date": now.isoformat(),
    })

    xp = score * XP_PER_CORRECT + (PASS_BONUS_XP if passed else 0)
    progress = get_or_create_progress(user)
    level_up = add_progress_xp(progress, xp)

    new_badges = []
    if total and percentage == 100:
        new_badges.append(award_badge(progress, "perfect-score"))
    if 0 < time_taken < exam.duration * 60 * 0.5:
        new_badges.append(award_badge(progress, "speed-demon"))
    new_badges = [b for b in new_badges if b]
    new_badges += check_and_award_badges(progress)

    add_experience(user, xp, source="exams")
    db.session.commit()

    logger.info(f"[Exams] User {g.user_id} scored {score}/{total} on exam {exam.id}")
    return jsonify({
        "message": "Exam submitted",
        "result": result,
        "xpEarned": xp,
        "newBadges": new_badges,
        "levelUp": level_up
    }), 200


@exams_bp.route("/<exam_id>/status", methods=["PUT"])
@require_role("admin")
def update_exam_status(exam_id):
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    status = (request.get_json() or {}).get("status")
    if status not in EXAM_STATUSES:
        return jsonify({"error": f"Status must be one of: {', '.join(EXAM_STATUSES)}"}), 400

    exam.status = status
    db.session.commit()
    return jsonify({"message": "Exam status updated", "exam": exam.to_dict(include_answers=True)}), 200


@exams_bp.route("/<exam_id>", methods=["DELETE"])
@require_role("admin")
def delete_exam(exam_id):
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    db.session.delete(exam)
    db.session.commit()

    logger.info(f"[Exams] {g.user_id} deleted exam {exam_id}")
    return jsonify({"message": "Exam deleted"}), 200


@exams_bp.route("/cleanup/abandoned", methods=["POST"])
@require_role("admin")
def cleanup_abandoned():
    """Reset exams left ongoing for too long"""
    now = datetime.utcnow()
    cleaned = 0

    for exam in Exam.query.filter_by(status="ongoing").all():
        starts = [parse_iso_datetime(s["started_at"]) for s in exam.started_by or [] if s.get("started_at")]
        last_start = max(starts) if starts else exam.start_time
        if now - last_start <= ABANDONED_AFTER:
            continue

        exam.status = "live" if exam.start_time <= now <= exam.end_time else "completed"
        cleaned += 1

    db.session.commit()
    logger.info(f"[Exams] Cleaned up {cleaned} abandoned exams")
    return jsonify({"message": f"Cleaned up {cleaned} exams", "count": cleaned}), 200
