"""
Authorization Service - Role-Based Access Control

Wraps JWT authentication with:
- Learner / tutor / admin permission checks
- Resource ownership validation
- Optional authentication for guest-accessible endpoints
"""
import logging
from typing import Optional
from functools import wraps
from flask import request, jsonify, g
from learningsphere.models.user import User
from learningsphere.utils.jwt_handler import verify_token

logger = logging.getLogger(__name__)


# ============================================================================
# Permission Definitions
# ============================================================================

class Permissions:
    """Permission constants for RBAC"""
    # Question bank
    QUESTION_MANAGE = "question:manage"

    # Practice and exams
    PRACTICE_TAKE = "practice:take"
    EXAM_TAKE = "exam:take"
    EXAM_MANAGE = "exam:manage"

    # Live sessions
    LIVE_SESSION_HOST = "live_session:host"
    LIVE_SESSION_JOIN = "live_session:join"

    # Reports
    REPORT_VIEW_OWN = "report:view_own"
    REPORT_VIEW_ALL = "report:view_all"

    # Admin
    USER_MANAGE = "user:manage"
    BLOG_MANAGE = "blog:manage"


# Role to permissions mapping
ROLE_PERMISSIONS = {
    "learner": [
        Permissions.PRACTICE_TAKE,
        Permissions.EXAM_TAKE,
        Permissions.LIVE_SESSION_JOIN,
        Permissions.REPORT_VIEW_OWN,
    ],
    "tutor": [
        Permissions.QUESTION_MANAGE,
        Permissions.PRACTICE_TAKE,
        Permissions.LIVE_SESSION_HOST,
        Permissions.LIVE_SESSION_JOIN,
        Permissions.REPORT_VIEW_OWN,
    ],
    "admin": [
        Permissions.QUESTION_MANAGE,
        Permissions.EXAM_MANAGE,
        Permissions.REPORT_VIEW_OWN,
        Permissions.REPORT_VIEW_ALL,
        Permissions.USER_MANAGE,
        Permissions.BLOG_MANAGE,
    ]
}


# ============================================================================
# Authorization Service
# ============================================================================

class AuthorizationService:
    """
    Permission and ownership checks.

    Usage:
        auth_service = get_authorization_service()

        if auth_service.can_view_report(g.current_user, user_id):
            ...
    """

    def has_permission(self, user: User, permission: str) -> bool:
        """Check if user has a specific permission"""
        if not user or not user.role:
            return False

        role_perms = set(ROLE_PERMISSIONS.get(user.role, []))
        # Learners flagged as tutors inherit hosting rights
        if user.is_tutor:
            role_perms.update(ROLE_PERMISSIONS["tutor"])
        return permission in role_perms

    def check_resource_ownership(self, user: User, owner_id: Optional[str]) -> bool:
        """Owners and admins may act on a resource"""
        if not user:
            return False
        if user.role == "admin":
            return True
        return owner_id is not None and str(owner_id) == str(user.id)

    def can_view_report(self, user: User, target_user_id: str) -> bool:
        if self.has_permission(user, Permissions.REPORT_VIEW_ALL):
            return True
        return self.check_resource_ownership(user, target_user_id)


def _user_from_header():
    """Resolve the bearer token to a user; returns (user, error_response)"""
    auth_header = request.headers.get("Authorization")

    if not auth_header:
        return None, (jsonify({"error": "Missing authorization header"}), 401)

    parts = auth_header.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None, (jsonify({"error": "Invalid authorization format"}), 401)

    try:
        payload = verify_token(parts[1])
    except Exception as e:
        logger.warning(f"Auth failed: {e}")
        return None, (jsonify({"error": f"Invalid token: {str(e)}"}), 401)

    user = User.query.get(payload["user_id"])
    if not user:
        return None, (jsonify({"error": "User not found"}), 404)

    if user.is_banned:
        return None, (jsonify({"error": "Account is banned"}), 403)

    return user, None


def require_auth(f):
    """Decorator to require authentication"""
    @wraps(f)
    def decorated(*args, **kwargs):
        user, error = _user_from_header()
        if error:
            return error

        g.current_user = user
        g.user_id = user.id

        return f(*args, **kwargs)
    return decorated


def optional_auth(f):
    """Decorator that authenticates when a valid token is present and continues as guest otherwise"""
    @wraps(f)
    def decorated(*args, **kwargs):
        g.current_user = None
        g.user_id = None

        if request.headers.get("Authorization"):
            user, error = _user_from_header()
            if error:
                logger.info("[Auth] Optional auth failed, continuing as guest")
            else:
                g.current_user = user
                g.user_id = user.id

        return f(*args, **kwargs)
    return decorated


def require_role(*roles):
    """Decorator to require specific roles"""
    def decorator(f):
        @wraps(f)
        @require_auth
        def decorated(*args, **kwargs):
            if g.current_user.role not in roles:
                return jsonify({
                    "error": f"Requires role: {', '.join(roles)}"
                }), 403

            return f(*args, **kwargs)
        return decorated
    return decorator


def tutor_required(f):
    """Decorator for tutors, by role or by the is_tutor flag"""
    @wraps(f)
    @require_auth
    def decorated(*args, **kwargs):
        if not g.current_user.can_tutor:
            return jsonify({"error": "Access denied. Tutors only."}), 403
        return f(*args, **kwargs)
    return decorated


# Singleton
_auth_service: Optional[AuthorizationService] = None


def get_authorization_service() -> AuthorizationService:
    """Get or create authorization service singleton"""
    global _auth_service
    if _auth_service is None:
        _auth_service = AuthorizationService()
    return _auth_service
