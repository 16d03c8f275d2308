"""
Chatbot Routes - study assistant for learners, tutors and guests
"""
import logging
from datetime import datetime

from flask import Blueprint, request, jsonify, g

from learningsphere import db
from learningsphere.services.authorization_service import require_auth, optional_auth
from learningsphere.services.chatbot_service import (
    get_chatbot_service, dashboard_data, generate_suggestions,
)
from learningsphere.services.rate_limiter import rate_limit

logger = logging.getLogger(__name__)

chatbot_bp = Blueprint("chatbot", __name__, url_prefix="/api/chatbot")

MAX_MESSAGE_LENGTH = 2000


@chatbot_bp.route("/chat", methods=["POST"])
@optional_auth
@rate_limit("chatbot_message")
def chat():
    data = request.get_json(silent=True) or {}
    message = (data.get("message") or "").strip()

    if not message:
        return jsonify({"success": False, "error": "Message is required"}), 400

    context = data.get("context") if isinstance(data.get("context"), dict) else None
    result = get_chatbot_service().respond(message[:MAX_MESSAGE_LENGTH], g.current_user, context)
    # Context gathering may refresh exam statuses
    db.session.commit()

    logger.info(f"[Chatbot] {g.user_id or 'guest'} intent={result['intent']}")
    return jsonify({
        "success": True,
        "response": result["response"],
        "intent": result["intent"],
        "suggestions": result["suggestions"],
        "timestamp": datetime.utcnow().isoformat()
    }), 200


@chatbot_bp.route("/dashboard", methods=["GET"])
@require_auth
def get_dashboard():
    data = dashboard_data(g.current_user)
    db.session.commit()
    return jsonify({"success": True, "dashboard": data}), 200


@chatbot_bp.route("/suggestions", methods=["GET"])
@optional_auth
def get_suggestions():
    role = g.current_user.role if g.current_user else "guest"
    category = request.args.get("category", "general")
    return jsonify({
        "success": True,
        "role": role,
        "category": category,
        "suggestions": generate_suggestions(role, category)
    }), 200
