"""
Question Bank Routes
"""
import logging
from flask import Blueprint, request, jsonify, g
from learningsphere import db
from learningsphere.models.question import Question, DIFFICULTY_LEVELS, ANSWER_KEYS
from learningsphere.services.authorization_service import require_auth, require_role

logger = logging.getLogger(__name__)

questions_bp = Blueprint("questions", __name__, url_prefix="/api/questions")

REQUIRED_FIELDS = ("question_text", "option_a", "option_b", "option_c", "option_d", "answer", "difficulty")
EDITABLE_FIELDS = REQUIRED_FIELDS + ("blooms_taxonomy", "tags", "is_active")


def _validate(data: dict, partial: bool = False):
    """Return an error message or None"""
    if not partial:
        for field in REQUIRED_FIELDS:
            if not data.get(field):
                return f"Missing required field: {field}"

    if "answer" in data and str(data["answer"]).strip().lower() not in ANSWER_KEYS:
        return "Answer must be one of a, b, c, d"

    if "difficulty" in data and data["difficulty"] not in DIFFICULTY_LEVELS:
        return f"Difficulty must be one of: {', '.join(DIFFICULTY_LEVELS)}"

    return None


def _apply(question: Question, data: dict):
    for field in EDITABLE_FIELDS:
        if field not in data:
            continue
        value = data[field]
        if field == "answer":
            value = str(value).strip().lower()
        elif field == "tags" and isinstance(value, list):
            value = ", ".join(value)
        setattr(question, field, value)


@questions_bp.route("", methods=["GET"])
@require_auth
def list_questions():
    """Paginated list with difficulty, tag and active filters"""
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 20, type=int), 1), 100)

    query = Question.query

    difficulty = request.args.get("difficulty")
    if difficulty:
        query = query.filter(Question.difficulty == difficulty)

    tags = request.args.get("tags")
    if tags:
        query = query.filter(Question.tags.ilike(f"%{tags}%"))

    is_active = request.args.get("isActive")
    if is_active is not None:
        query = query.filter(Question.is_active.is_(is_active.lower() == "true"))

    total = query.count()
    questions = query.order_by(Question.id.desc()).offset((page - 1) * limit).limit(limit).all()

    return jsonify({
        "questions": [q.to_dict() for q in questions],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit
        }
    }), 200


@questions_bp.route("/<int:question_id>", methods=["GET"])
@require_auth
def get_question(question_id):
    question = Question.query.get(question_id)
    if not question:
        return jsonify({"error": "Question not found"}), 404
    return jsonify({"question": question.to_dict()}), 200


@questions_bp.route("", methods=["POST"])
@require_role("tutor", "admin")
def create_question():
    data = request.get_json() or {}

    error = _validate(data)
    if error:
        return jsonify({"error": error}), 400

    question = Question(created_by=g.user_id, is_active=True, total_attempts=0, correct_attempts=0)
    _apply(question, data)

    db.session.add(question)
    db.session.commit()

    logger.info(f"[Questions] {g.user_id} created question {question.id}")
    return jsonify({"message": "Question created", "question": question.to_dict()}), 201


@questions_bp.route("/<int:question_id>", methods=["PUT"])
@require_role("tutor", "admin")
def update_question(question_id):
    question = Question.query.get(question_id)
    if not question:
        return jsonify({"error": "Question not found"}), 404

    data = request.get_json() or {}
    error = _validate(data, partial=True)
    if error:
        return jsonify({"error": error}), 400

    _apply(question, data)
    db.session.commit()

    return jsonify({"message": "Question updated", "question": question.to_dict()}), 200


@questions_bp.route("/<int:question_id>", methods=["DELETE"])
@require_role("tutor", "admin")
def delete_question(question_id):
    """Soft delete: deactivated questions stay for session history"""
    question = Question.query.get(question_id)
    if not question:
        return jsonify({"error": "Question not found"}), 404

    question.is_active = False
    db.session.commit()

    return jsonify({"message": "Question deactivated"}), 200
