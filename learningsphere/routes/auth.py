"""
Authentication Routes - registration, login, password reset, profile
"""
import hashlib
import logging
import secrets
from datetime import datetime, timedelta

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.models.user import User
from learningsphere.services.authorization_service import require_auth
from learningsphere.services.email_service import send_password_reset
from learningsphere.services.gamification import get_or_create_progress, check_and_award_badges
from learningsphere.services.rate_limiter import rate_limit
from learningsphere.services.recaptcha import verify_recaptcha, RecaptchaError
from learningsphere.utils.jwt_handler import create_tokens, verify_token, refresh_access_token

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")

MIN_PASSWORD_LENGTH = 6
RESET_TOKEN_TTL = timedelta(hours=1)
SELF_ASSIGNABLE_ROLES = ("learner", "tutor")
PROFILE_FIELDS = {
    "name": "name", "bio": "bio", "avatar": "avatar_url", "avatar_url": "avatar_url",
    "interests": "interests", "skills": "skills", "location": "location",
}


def _hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def _as_list(value):
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(value)


def _valid_location(value) -> bool:
    return value is None or isinstance(value, str) or (
        isinstance(value, list) and all(isinstance(v, str) for v in value)
    )


def _token_response(user: User, message: str, status: int):
    access_token, refresh_token = create_tokens(str(user.id), user.role)
    return jsonify({
        "message": message,
        "user": user.to_dict(),
        "access_token": access_token,
        "refresh_token": refresh_token
    }), status


@auth_bp.route("/register", methods=["POST"])
@rate_limit("register")
def register():
    """Register a learner or tutor"""
    data = request.get_json() or {}

    for field in ("email", "password", "name"):
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    if len(data["password"]) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    if not _valid_location(data.get("location")):
        return jsonify({"error": "Location must be a string or a list of strings"}), 400

    email = data["email"].strip().lower()
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "Email already registered"}), 409

    try:
        verify_recaptcha(data.get("recaptchaToken"), request.remote_addr)
    except RecaptchaError as e:
        return jsonify({"error": str(e)}), 400

    role = data.get("role") if data.get("role") in SELF_ASSIGNABLE_ROLES else "learner"

    user = User(
        email=email,
        name=data["name"].strip(),
        role=role,
        is_tutor=role == "tutor" or bool(data.get("isTutor")),
        interests=_as_list(data.get("interests")),
        skills=_as_list(data.get("skills")),
        location=data.get("location"),
        practice_history=[],
        practice_stats={},
        practice_badges=[],
        exam_history=[],
        exam_stats={},
    )
    user.set_password(data["password"])

    try:
        db.session.add(user)
        db.session.flush()

        # Every new account starts with the noobie badge
        progress = get_or_create_progress(user)
        check_and_award_badges(progress)

        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error(f"[Auth] Registration failed for {email}: {e}")
        return jsonify({"error": f"Database error: {str(e)}"}), 500

    logger.info(f"[Auth] Registered {user.role} {user.id}")
    return _token_response(user, "User registered successfully", 201)


@auth_bp.route("/login", methods=["POST"])
@rate_limit("login_attempt")
def login():
    """Authenticate user and return tokens"""
    data = request.get_json() or {}

    email = (data.get("email") or "").strip().lower()
    password = data.get("password")

    if not email or not password:
        return jsonify({"error": "Email and password required"}), 400

    try:
        verify_recaptcha(data.get("recaptchaToken"), request.remote_addr)
    except RecaptchaError as e:
        return jsonify({"error": str(e)}), 400

    user = User.query.filter_by(email=email).first()

    if not user or not user.check_password(password):
        return jsonify({"error": "Invalid email or password"}), 401

    if user.is_banned:
        return jsonify({"error": "Account is banned"}), 403

    if not user.is_active:
        return jsonify({"error": "Account is deactivated"}), 403

    return _token_response(user, "Login successful", 200)


@auth_bp.route("/forgot", methods=["POST"])
@rate_limit("password_reset")
def forgot_password():
    """Email a one-hour password reset link"""
    data = request.get_json() or {}
    email = (data.get("email") or "").strip().lower()

    if not email:
        return jsonify({"error": "Email is required"}), 400

    user = User.query.filter_by(email=email).first()
    if not user:
        return jsonify({"error": "No account with that email"}), 404

    token = secrets.token_hex(20)
    user.reset_password_token = _hash_token(token)
    user.reset_password_expires = datetime.utcnow() + RESET_TOKEN_TTL
    db.session.commit()

    if not send_password_reset(user.email, token):
        user.reset_password_token = None
        user.reset_password_expires = None
        db.session.commit()
        return jsonify({"error": "Email could not be sent"}), 500

    return jsonify({"message": "Password reset email sent"}), 200


@auth_bp.route("/reset/<token>", methods=["PUT"])
def reset_password(token):
    """Set a new password using a reset token"""
    data = request.get_json() or {}
    password = data.get("password")

    user = User.query.filter_by(reset_password_token=_hash_token(token)).first()
    if not user or not user.reset_password_expires or user.reset_password_expires < datetime.utcnow():
        return jsonify({"error": "Invalid or expired reset token"}), 400

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"Password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    user.set_password(password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.session.commit()

    return jsonify({"message": "Password reset successful"}), 200


@auth_bp.route("/me", methods=["GET"])
@require_auth
def get_current_user():
    """Get current authenticated user"""
    return jsonify({"user": g.current_user.to_dict()}), 200


@auth_bp.route("/profile", methods=["GET"])
@require_auth
def get_profile():
    """User with stats and gamification progress"""
    user = g.current_user
    progress = get_or_create_progress(user)
    db.session.commit()
    return jsonify({
        "user": user.to_dict(include_stats=True),
        "progress": progress.to_dict()
    }), 200


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile():
    data = request.get_json() or {}
    user = g.current_user

    for field, attr in PROFILE_FIELDS.items():
        if field not in data:
            continue
        value = data[field]
        if field in ("interests", "skills"):
            value = _as_list(value)
        if field == "name" and not (value or "").strip():
            return jsonify({"error": "Name cannot be empty"}), 400
        if field == "location" and not _valid_location(value):
            return jsonify({"error": "Location must be a string or a list of strings"}), 400
        setattr(user, attr, value)

    db.session.commit()
    return jsonify({"message": "Profile updated", "user": user.to_dict()}), 200


@auth_bp.route("/refresh", methods=["POST"])
def refresh():
    """Refresh access token"""
    data = request.get_json() or {}
    token = data.get("refresh_token")

    if not token:
        return jsonify({"error": "Refresh token required"}), 400

    try:
        payload = verify_token(token, token_type="refresh")
    except Exception:
        return jsonify({"error": "Invalid or expired refresh token"}), 401

    user = User.query.get(payload.get("user_id"))
    if not user or user.is_banned:
        return jsonify({"error": "Invalid or expired refresh token"}), 401

    new_access_token = refresh_access_token(token, user.role)
    if not new_access_token:
        return jsonify({"error": "Invalid or expired refresh token"}), 401

    return jsonify({"access_token": new_access_token}), 200


@auth_bp.route("/logout", methods=["POST"])
@require_auth
def logout():
    """Logout user (client should discard tokens)"""
    return jsonify({"message": "Logged out successfully"}), 200


@auth_bp.route("/change-password", methods=["POST"])
@require_auth
def change_password():
    data = request.get_json() or {}
    user = g.current_user

    current_password = data.get("current_password")
    new_password = data.get("new_password")

    if not current_password or not new_password:
        return jsonify({"error": "Current and new password required"}), 400

    if not user.check_password(current_password):
        return jsonify({"error": "Current password is incorrect"}), 401

    if len(new_password) < MIN_PASSWORD_LENGTH:
        return jsonify({"error": f"New password must be at least {MIN_PASSWORD_LENGTH} characters"}), 400

    user.set_password(new_password)
    db.session.commit()

    return jsonify({"message": "Password changed successfully"}), 200
