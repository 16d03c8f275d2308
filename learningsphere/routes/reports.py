"""
Report Routes - AI narrative reports for learners and exams
"""
import logging

from flask import Blueprint, jsonify, g

from learningsphere import db
from learningsphere.models.adaptive_exam import AdaptiveExam
from learningsphere.models.exam import Exam
from learningsphere.models.user import User
from learningsphere.services.authorization_service import (
    require_auth, require_role, get_authorization_service,
)
from learningsphere.services.gamification import get_or_create_progress
from learningsphere.services.gemini_service import get_gemini_service
from learningsphere.services.rate_limiter import rate_limit

logger = logging.getLogger(__name__)

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")

HARDEST_QUESTION_COUNT = 5


def _adaptive_stats(user_id: str) -> dict:
    exams = AdaptiveExam.query.filter_by(user_id=user_id, status="completed").all()
    abilities = [e.final_ability for e in exams if e.final_ability is not None]
    return {
        "totalExams": len(exams),
        "averageAccuracy": round(sum(e.accuracy or 0 for e in exams) / len(exams), 2) if exams else 0,
        "bestAbility": max(abilities) if abilities else 0,
        "totalXp": sum(e.xp_earned or 0 for e in exams),
    }


def _student_report(user: User):
    progress = get_or_create_progress(user)
    db.session.commit()

    data = {
        "name": user.name,
        "email": user.email,
        "exam_stats": user.exam_stats or {},
        "recent_exams": (user.exam_history or [])[-10:],
        "practice_stats": user.practice_stats or {},
        "practice_badges": user.practice_badges or [],
        "adaptive_stats": _adaptive_stats(user.id),
        "experience": user.experience or {},
        "progress": progress.to_dict(),
    }

    report = get_gemini_service().generate_student_report(data)
    logger.info(f"[Reports] Generated student report for {user.id}")
    return jsonify({"report": report, "data": data}), 200


@reports_bp.route("/user", methods=["GET"])
@require_auth
@rate_limit("report_generation")
def get_my_report():
    return _student_report(g.current_user)


@reports_bp.route("/user/<user_id>", methods=["GET"])
@require_auth
@rate_limit("report_generation")
def get_user_report(user_id):
    if not get_authorization_service().can_view_report(g.current_user, user_id):
        return jsonify({"error": "Not authorized to view this report"}), 403

    user = User.query.get(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404
    return _student_report(user)


@reports_bp.route("/exam/<exam_id>", methods=["GET"])
@require_role("admin")
@rate_limit("report_generation")
def get_exam_report(exam_id):
    """Participation, pass rate and per-question difficulty for one exam"""
    exam = Exam.query.get(exam_id)
    if not exam:
        return jsonify({"error": "Exam not found"}), 404

    results = exam.results or []
    questions = exam.questions or []
    participants = len(results)

    question_stats = []
    for index, question in enumerate(questions):
        correct = sum(
            1 for r in results
            if str((r.get("answers") or {}).get(str(index), "")).strip().upper() == question.get("correctAnswer")
        )
        question_stats.append({
            "index": index,
            "question": question.get("question"),
            "correct_rate": round(correct / participants * 100, 2) if participants else 0,
        })

    data = {
        "title": exam.title,
        "subject": exam.subject,
        "topic": exam.topic,
        "total_questions": len(questions),
        "participants": participants,
        "average_percentage": round(sum(r.get("percentage", 0) for r in results) / participants, 2)
        if participants else 0,
        "pass_rate": round(sum(1 for r in results if r.get("passed")) / participants * 100, 2)
        if participants else 0,
        "hardest_questions": sorted(question_stats, key=lambda q: q["correct_rate"])[:HARDEST_QUESTION_COUNT]
        if participants else [],
        "question_stats": question_stats,
    }

    report = get_gemini_service().generate_exam_report(data)
    logger.info(f"[Reports] Generated exam report for {exam.id}")
    return jsonify({"report": report, "data": data}), 200
