"""
Sectional Test Routes - multi-stage tests with fullscreen enforcement

Each section serves up to QUESTIONS_PER_SECTION questions at its
difficulty tier. A section must reach SECTION_PASS_THRESHOLD accuracy
before the next one opens; failing a section ends the test.
"""
import logging
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.practice import SectionalSession
from learningsphere.models.question import Question, DIFFICULTY_LEVELS
from learningsphere.services.authorization_service import require_auth
from learningsphere.services.gamification import calculate_practice_xp, record_practice_result
from learningsphere.services.practice_engine import pick_question, grade
from learningsphere.services.proctoring import FullscreenMonitor, FULLSCREEN_VIOLATION
from learningsphere.utils.time_utils import parse_seconds

logger = logging.getLogger(__name__)

sectional_bp = Blueprint("sectional", __name__, url_prefix="/api/practice/sectional")

QUESTIONS_PER_SECTION = 10
SECTION_PASS_THRESHOLD = 40
SECTION_TIME_LIMIT = timedelta(minutes=10)
XP_PER_PASSED_SECTION = 50


def _own_session(session_id: str):
    return SectionalSession.query.filter_by(id=session_id, user_id=g.user_id).first()


def _public_sections(session: SectionalSession):
    return [
        {
            "sectionId": s["sectionId"],
            "difficulty": s["difficulty"],
            "correct": s["correct"],
            "total": s["total"],
            "passed": s["passed"],
            "completed": s["completed"],
        }
        for s in session.sections or []
    ]


def _serve(session: SectionalSession, question: Question):
    session.current_question_id = question.id
    session.served_question_ids = list(session.served_question_ids or []) + [question.id]


def _question_payload(session: SectionalSession, question: Question) -> dict:
    return {
        "question": question.to_dict(include_answer=False),
        "timeRemaining": session.time_remaining(),
        "questionNumber": session.current_section["total"] + 1,
        "totalQuestions": QUESTIONS_PER_SECTION,
        "currentSection": session.current_section_index,
        "sections": _public_sections(session),
    }


def _close_section(sections: list, index: int):
    section = sections[index]
    accuracy = section["correct"] / section["total"] * 100 if section["total"] else 0
    section["passed"] = accuracy >= SECTION_PASS_THRESHOLD
    section["completed"] = True
    return section


def _finalize(session: SectionalSession, status: str, reason: str = None):
    """End the test once and award XP for the work done"""
    now = datetime.utcnow()
    session.status = status
    session.end_reason = reason
    session.completed_at = now
    session.current_question_id = None

    sections = session.sections or []
    total = sum(s["total"] for s in sections)
    correct = sum(s["correct"] for s in sections)
    passed_sections = sum(1 for s in sections if s.get("passed"))
    accuracy = round(correct / total * 100, 2) if total else 0

    if total:
        streak = (g.current_user.practice_stats or {}).get("currentStreak", 0)
        xp = calculate_practice_xp(accuracy, total, streak) + passed_sections * XP_PER_PASSED_SECTION
    else:
        xp = 0
    session.xp_earned = xp

    entry = {
        "session_id": session.id,
        "type": "sectional",
        "date": now.isoformat(),
        "total_questions": total,
        "correct_answers": correct,
        "accuracy": accuracy,
        "xp_earned": xp,
        "sections_passed": passed_sections,
        "duration_minutes": session.duration_minutes(),
    }
    summary = record_practice_result(g.current_user, entry, xp)
    session.new_badges = summary["new_badges"]
    logger.info(f"[Sectional] Session {session.id} {status} ({reason}): {correct}/{total}, {xp} XP")


def _results(session: SectionalSession) -> dict:
    return {
        "sessionId": session.id,
        "status": session.status,
        "sections": _public_sections(session),
        "duration": session.duration_minutes(),
        "xpEarned": session.xp_earned or 0,
        "newBadges": session.new_badges or [],
        "endReason": session.end_reason,
        "fullscreenViolations": session.fullscreen_violations or 0,
    }


@sectional_bp.route("/start", methods=["POST"])
@require_auth
def start_sectional():
    data = request.get_json(silent=True) or {}
    raw_sections = data.get("sections")

    if not raw_sections or not isinstance(raw_sections, list):
        return jsonify({"error": "At least one section is required"}), 400

    sections = []
    for raw in raw_sections:
        if not isinstance(raw, dict) or raw.get("difficulty") not in DIFFICULTY_LEVELS:
            return jsonify({"error": f"Section difficulty must be one of: {', '.join(DIFFICULTY_LEVELS)}"}), 400
        sections.append({
            "sectionId": raw.get("sectionId") or f"section-{len(sections) + 1}",
            "difficulty": raw["difficulty"],
            "correct": 0,
            "total": 0,
            "passed": None,
            "completed": False,
        })

    index = data.get("sectionIndex") or 0
    if not isinstance(index, int) or not 0 <= index < len(sections):
        return jsonify({"error": "Invalid section index"}), 400

    question = pick_question(sections[index]["difficulty"], [])
    if not question:
        return jsonify({"error": f"No questions available for {sections[index]['difficulty']}"}), 404

    now = datetime.utcnow()
    session = SectionalSession(
        user_id=g.user_id,
        sections=sections,
        current_section_index=index,
        served_question_ids=[],
        responses=[],
        status="active",
        section_deadline=now + SECTION_TIME_LIMIT,
        fullscreen_violations=0,
        started_at=now,
    )
    _serve(session, question)
    db.session.add(session)
    db.session.commit()

    payload = _question_payload(session, question)
    payload["sessionId"] = session.id
    return jsonify(payload), 201


@sectional_bp.route("/<session_id>/next", methods=["POST"])
@require_auth
def next_sectional_question(session_id):
    """Grade an answer (or re-serve the current question when userAnswer is null)"""
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Sectional session not found"}), 404

    if session.status == "terminated":
        return jsonify({"error": "Test was terminated", "terminated": True,
                        "endReason": session.end_reason}), 400
    if session.is_finished:
        return jsonify({"completed": True, "status": session.status}), 200
    if session.status == "section_completed":
        return jsonify({"error": "Section completed; continue to the next section"}), 400

    if session.time_remaining() <= 0:
        sections = [dict(s) for s in session.sections]
        _close_section(sections, session.current_section_index)
        session.sections = sections
        _finalize(session, "expired", reason="time_expired")
        db.session.commit()
        return jsonify({"completed": True, "expired": True, "results": _results(session)}), 200

    data = request.get_json(silent=True) or {}
    question = Question.query.get(session.current_question_id)
    user_answer = data.get("userAnswer")

    if user_answer is None:
        return jsonify(_question_payload(session, question)), 200

    try:
        time_taken = parse_seconds(data.get("timeTaken"))
    except (TypeError, ValueError):
        return jsonify({"error": "timeTaken must be a number of seconds"}), 400

    index = session.current_section_index
    response = grade(question, user_answer, time_taken)
    response["section_index"] = index
    session.responses = list(session.responses or []) + [response]

    sections = [dict(s) for s in session.sections]
    section = sections[index]
    section["total"] += 1
    if response["is_correct"]:
        section["correct"] += 1

    upcoming = None
    if section["total"] < QUESTIONS_PER_SECTION:
        upcoming = pick_question(section["difficulty"], session.served_question_ids)

    if upcoming is None:
        _close_section(sections, index)
        session.sections = sections
        has_next = bool(section["passed"]) and index + 1 < len(sections)
        if has_next:
            session.status = "section_completed"
            session.current_question_id = None
        else:
            _finalize(session, "completed", reason="all_sections_done" if section["passed"] else "section_failed")
        db.session.commit()

        return jsonify({
            "sectionCompleted": True,
            "isCorrect": response["is_correct"],
            "sectionCorrect": section["correct"],
            "sectionTotal": section["total"],
            "passed": section["passed"],
            "hasNextSection": has_next,
            "nextSectionIndex": index + 1 if has_next else None,
            "testCompleted": not has_next
        }), 200

    session.sections = sections
    _serve(session, upcoming)
    db.session.commit()

    payload = _question_payload(session, upcoming)
    payload["isCorrect"] = response["is_correct"]
    return jsonify(payload), 200


@sectional_bp.route("/<session_id>/continue", methods=["POST"])
@require_auth
def continue_sectional(session_id):
    """Open the next section after a passed one"""
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Sectional session not found"}), 404

    if session.status != "section_completed":
        return jsonify({"error": f"Cannot continue a session that is {session.status}"}), 400

    index = session.current_section_index + 1
    question = pick_question(session.sections[index]["difficulty"], session.served_question_ids)

    if not question:
        _finalize(session, "completed", reason="no_questions")
        db.session.commit()
        return jsonify({"completed": True, "testCompleted": True,
                        "message": "No questions available for the next section",
                        "results": _results(session)}), 200

    session.current_section_index = index
    session.status = "active"
    session.section_deadline = datetime.utcnow() + SECTION_TIME_LIMIT
    _serve(session, question)
    db.session.commit()

    return jsonify(_question_payload(session, question)), 200


@sectional_bp.route("/<session_id>/fullscreen-violation", methods=["POST"])
@require_auth
def record_fullscreen_violation(session_id):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Sectional session not found"}), 404

    monitor = FullscreenMonitor(session.fullscreen_violations)

    if session.is_finished:
        if session.status == "terminated":
            return jsonify(monitor.state().to_dict()), 200
        return jsonify({"error": "Test already ended"}), 400

    state = monitor.record_violation()
    session.fullscreen_violations = state.violations
    logger.warning(f"[Sectional] Fullscreen exit {state.violations} on session {session.id}")

    payload = state.to_dict()
    if state.terminated:
        sections = [dict(s) for s in session.sections]
        if sections[session.current_section_index]["total"]:
            _close_section(sections, session.current_section_index)
        session.sections = sections
        _finalize(session, "terminated", reason=FULLSCREEN_VIOLATION)
        payload["results"] = _results(session)

    db.session.commit()
    return jsonify(payload), 200


@sectional_bp.route("/<session_id>/end", methods=["POST"])
@require_auth
def end_sectional(session_id):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Sectional session not found"}), 404

    if session.is_finished:
        return jsonify({"error": "Test already ended"}), 400

    data = request.get_json(silent=True) or {}
    reason = data.get("reason") or "user_ended"

    monitor = FullscreenMonitor(session.fullscreen_violations)
    if "attempts" in data:
        session.fullscreen_violations = monitor.merge_client_count(data["attempts"]).violations
    if monitor.locked:
        reason = FULLSCREEN_VIOLATION

    sections = [dict(s) for s in session.sections]
    current = sections[session.current_section_index]
    if current["total"] and not current["completed"]:
        _close_section(sections, session.current_section_index)
    session.sections = sections

    status = "terminated" if reason == FULLSCREEN_VIOLATION else "completed"
    _finalize(session, status, reason=reason)
    db.session.commit()

    return jsonify({"completed": True, "results": _results(session)}), 200


@sectional_bp.route("/results/<session_id>", methods=["GET"])
@require_auth
def get_sectional_results(session_id):
    session = _own_session(session_id)
    if not session:
        return jsonify({"error": "Sectional session not found"}), 404
    return jsonify(_results(session)), 200
