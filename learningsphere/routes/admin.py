"""
Admin Routes - user management, platform analytics, session moderation
"""
import logging
from flask import Blueprint, request, jsonify, g
from sqlalchemy import or_

from learningsphere import db
from learningsphere.models import (
    User, Question, PracticeSession, AdaptiveExam, Exam, LiveSession, Blog,
)
from learningsphere.models.user import ROLES
from learningsphere.services.authorization_service import require_role
from learningsphere.services.email_service import send_session_cancelled

logger = logging.getLogger(__name__)

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


# ==================== User Management ====================

@admin_bp.route("/users", methods=["GET"])
@require_role("admin")
def list_users():
    """Paginated user list with role and name/email search"""
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 100)

    query = User.query

    role = request.args.get("role")
    if role:
        query = query.filter(User.role == role)

    search = request.args.get("search")
    if search:
        query = query.filter(or_(User.name.ilike(f"%{search}%"), User.email.ilike(f"%{search}%")))

    total = query.count()
    users = query.order_by(User.created_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return jsonify({
        "users": [u.to_dict() for u in users],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit
        }
    }), 200


@admin_bp.route("/users/<user_id>/ban", methods=["PUT"])
@require_role("admin")
def toggle_ban(user_id):
    if user_id == g.user_id:
        return jsonify({"error": "You cannot ban yourself"}), 400

    user = User.query.get(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    user.is_banned = not user.is_banned
    db.session.commit()

    action = "banned" if user.is_banned else "unbanned"
    logger.info(f"[Admin] {g.user_id} {action} user {user.id}")
    return jsonify({"message": f"User {action}", "user": user.to_dict()}), 200


@admin_bp.route("/users/<user_id>/role", methods=["PUT"])
@require_role("admin")
def change_role(user_id):
    role = (request.get_json() or {}).get("role")
    if role not in ROLES:
        return jsonify({"error": f"Role must be one of: {', '.join(ROLES)}"}), 400

    user = User.query.get(user_id)
    if not user:
        return jsonify({"error": "User not found"}), 404

    user.role = role
    if role == "tutor":
        user.is_tutor = True
    db.session.commit()

    logger.info(f"[Admin] {g.user_id} set role of {user.id} to {role}")
    return jsonify({"message": "Role updated", "user": user.to_dict()}), 200


# ==================== Analytics ====================

@admin_bp.route("/analytics", methods=["GET"])
@require_role("admin")
def get_analytics():
    """Platform-wide counts"""
    return jsonify({
        "analytics": {
            "totalUsers": User.query.count(),
            "learners": User.query.filter_by(role="learner").count(),
            "tutors": User.query.filter(or_(User.role == "tutor", User.is_tutor.is_(True))).count(),
            "bannedUsers": User.query.filter_by(is_banned=True).count(),
            "liveSessions": LiveSession.query.count(),
            "activeLiveSessions": LiveSession.query.filter_by(is_active=True).count(),
            "totalExams": Exam.query.count(),
            "practiceSessions": PracticeSession.query.count(),
            "adaptiveExams": AdaptiveExam.query.count(),
            "blogs": Blog.query.count(),
            "questions": Question.query.count()
        }
    }), 200


# ==================== Session Moderation ====================

@admin_bp.route("/sessions/<session_id>/moderate", methods=["PUT"])
@require_role("admin")
def moderate_session(session_id):
    """Approve a live session or delete it and notify everyone involved"""
    session = LiveSession.query.filter_by(session_id=session_id).first()
    if not session:
        return jsonify({"error": "Session not found"}), 404

    action = (request.get_json() or {}).get("action")

    if action == "approve":
        session.is_approved = True
        db.session.commit()
        logger.info(f"[Admin] {g.user_id} approved session {session_id}")
        return jsonify({"message": "Session approved", "session": session.to_dict()}), 200

    if action == "delete":
        participant_ids = [p.get("user_id") for p in session.participants or []]
        recipients = [session.tutor.email] if session.tutor else []
        if participant_ids:
            recipients += [u.email for u in User.query.filter(User.id.in_(participant_ids)).all()]

        send_session_cancelled(recipients, session)

        db.session.delete(session)
        db.session.commit()
        logger.info(f"[Admin] {g.user_id} deleted session {session_id}")
        return jsonify({"message": "Session deleted"}), 200

    return jsonify({"error": "Action must be approve or delete"}), 400
