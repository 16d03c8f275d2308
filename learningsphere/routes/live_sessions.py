"""
Live Session Routes - tutor-hosted sessions, participation, chat, transcription
"""
import logging
from datetime import datetime

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.live_session import LiveSession
from learningsphere.models.user import User
from learningsphere.services.authorization_service import require_auth, require_role, tutor_required
from learningsphere.services.email_service import send_session_scheduled
from learningsphere.services.gamification import (
    add_progress_xp, check_and_award_badges, complete_session, get_or_create_progress,
)
from learningsphere.services.gemini_service import get_gemini_service, TranscriptionError
from learningsphere.services.rate_limiter import rate_limit
from learningsphere.utils.time_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

live_sessions_bp = Blueprint("live_sessions", __name__, url_prefix="/api/livesessions")

JOIN_XP = 150
MAX_MESSAGE_LENGTH = 2000


def _get_session(session_id: str):
    return LiveSession.query.filter_by(session_id=session_id).first()


def _owned_session(session_id: str):
    """Returns (session, error_response)"""
    session = _get_session(session_id)
    if not session:
        return None, (jsonify({"error": "Session not found"}), 404)
    if session.tutor_id != g.user_id:
        return None, (jsonify({"error": "Only the hosting tutor can do this"}), 403)
    return session, None


@live_sessions_bp.route("", methods=["POST"])
@tutor_required
def create_session():
    data = request.get_json() or {}

    title = (data.get("title") or "").strip()
    if not title:
        return jsonify({"error": "Title is required"}), 400

    try:
        scheduled_time = parse_iso_datetime(data.get("scheduledTime"))
        max_participants = int(data.get("maxParticipants") or 10)
    except (TypeError, ValueError):
        return jsonify({"error": "Invalid scheduledTime or maxParticipants"}), 400

    if max_participants < 1:
        return jsonify({"error": "maxParticipants must be at least 1"}), 400

    session = LiveSession(
        tutor_id=g.user_id,
        title=title,
        description=data.get("description"),
        scheduled_time=scheduled_time,
        max_participants=max_participants,
        participants=[],
        chat_messages=[],
    )
    db.session.add(session)
    db.session.commit()

    email_sent = send_session_scheduled(g.current_user, session)
    logger.info(f"[LiveSessions] Tutor {g.user_id} created {session.session_id}")

    return jsonify({
        "message": "Session created",
        "session": session.to_dict(),
        "emailSent": email_sent
    }), 201


@live_sessions_bp.route("", methods=["GET"])
@require_auth
def list_sessions():
    """Tutors see their own sessions; everyone else sees upcoming ones"""
    if g.current_user.can_tutor:
        sessions = LiveSession.query.filter_by(tutor_id=g.user_id) \
            .order_by(LiveSession.created_at.desc()).all()
    else:
        sessions = LiveSession.query.filter(
            LiveSession.is_active.is_(False),
            LiveSession.ended_at.is_(None),
            LiveSession.is_approved.is_(True),
        ).order_by(LiveSession.scheduled_time.asc()).all()

    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@live_sessions_bp.route("/<session_id>", methods=["GET"])
@require_auth
def get_session(session_id):
    session = _get_session(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404
    return jsonify({"session": session.to_dict()}), 200


@live_sessions_bp.route("/<session_id>/join", methods=["POST"])
@require_role("learner", "tutor")
def join_session(session_id):
    session = _get_session(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not session.is_joinable:
        return jsonify({"error": "Session is not active or scheduled"}), 400

    if session.has_participant(g.user_id):
        return jsonify({"message": "Already joined", "session": session.to_dict()}), 200

    if session.is_full:
        return jsonify({"error": "Session is full"}), 400

    first_join = not session.has_attended(g.user_id)
    session.participants = list(session.participants or []) + [
        {"user_id": g.user_id, "joined_at": datetime.utcnow().isoformat()}
    ]

    new_badges = []
    if first_join:
        session.attendee_ids = list(session.attendee_ids or []) + [g.user_id]

    if first_join and g.current_user.role == "learner":
        progress = get_or_create_progress(g.current_user)
        progress.live_sessions_attended = (progress.live_sessions_attended or 0) + 1
        add_progress_xp(progress, JOIN_XP)
        new_badges = check_and_award_badges(progress)

    db.session.commit()
    logger.info(f"[LiveSessions] {g.user_id} joined {session.session_id}")

    return jsonify({
        "message": "Joined session",
        "session": session.to_dict(),
        "newBadges": new_badges
    }), 200


@live_sessions_bp.route("/<session_id>/start", methods=["POST"])
@tutor_required
def start_session(session_id):
    session, error = _owned_session(session_id)
    if error:
        return error

    if session.ended_at:
        return jsonify({"error": "Session has already ended"}), 400

    session.is_active = True
    session.started_at = session.started_at or datetime.utcnow()
    db.session.commit()

    logger.info(f"[LiveSessions] {session.session_id} started")
    return jsonify({"message": "Session started", "session": session.to_dict()}), 200


@live_sessions_bp.route("/<session_id>/end", methods=["POST"])
@tutor_required
def end_session(session_id):
    """End the session and credit every participant's progress"""
    session, error = _owned_session(session_id)
    if error:
        return error

    if session.ended_at:
        return jsonify({"error": "Session has already ended"}), 400

    session.is_active = False
    session.ended_at = datetime.utcnow()
    hours = session.duration_hours()

    participant_ids = [p.get("user_id") for p in session.participants or []]
    users = User.query.filter(User.id.in_(participant_ids)).all() if participant_ids else []
    for user in users:
        complete_session(get_or_create_progress(user), hours=hours, live=True)

    db.session.commit()

    logger.info(f"[LiveSessions] {session.session_id} ended after {hours}h with {len(users)} participants")
    return jsonify({"message": "Session ended", "session": session.to_dict(), "durationHours": hours}), 200


@live_sessions_bp.route("/<session_id>/chat", methods=["GET"])
@require_auth
def get_chat(session_id):
    session = _get_session(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not session.can_access_chat(g.user_id):
        return jsonify({"error": "Join the session to view its chat"}), 403

    return jsonify({"messages": session.chat_messages or []}), 200


@live_sessions_bp.route("/<session_id>/chat", methods=["POST"])
@require_auth
def post_chat(session_id):
    session = _get_session(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not session.can_access_chat(g.user_id):
        return jsonify({"error": "Join the session to chat"}), 403

    message = ((request.get_json() or {}).get("message") or "").strip()
    if not message:
        return jsonify({"error": "Message cannot be empty"}), 400

    entry = {
        "user_id": g.user_id,
        "username": g.current_user.name,
        "message": message[:MAX_MESSAGE_LENGTH],
        "timestamp": datetime.utcnow().isoformat(),
    }
    session.chat_messages = list(session.chat_messages or []) + [entry]
    db.session.commit()

    return jsonify({"message": entry}), 201


@live_sessions_bp.route("/<session_id>/leave", methods=["POST"])
@require_auth
def leave_session(session_id):
    session = _get_session(session_id)
    if not session:
        return jsonify({"error": "Session not found"}), 404

    if not session.has_participant(g.user_id):
        return jsonify({"error": "You are not in this session"}), 400

    session.participants = [p for p in session.participants if p.get("user_id") != g.user_id]
    db.session.commit()

    return jsonify({"message": "Left session"}), 200


@live_sessions_bp.route("/<session_id>/transcribe", methods=["POST"])
@tutor_required
@rate_limit("transcription")
def transcribe_session(session_id):
    """Transcribe an uploaded recording and store a short summary"""
    session, error = _owned_session(session_id)
    if error:
        return error

    audio = request.files.get("audio")
    if not audio or not audio.filename:
        return jsonify({"error": "No audio file provided"}), 400

    language = request.form.get("language", "en-US")
    gemini = get_gemini_service()

    try:
        transcript = gemini.transcribe_audio(audio.read(), audio.filename, language)
    except TranscriptionError as e:
        logger.error(f"[LiveSessions] Transcription failed for {session.session_id}: {e}")
        return jsonify({"error": str(e)}), 502

    session.transcript = transcript
    session.summary = gemini.summarize_transcription(transcript)
    db.session.commit()

    return jsonify({
        "message": "Transcription complete",
        "transcript": session.transcript,
        "summary": session.summary
    }), 200
