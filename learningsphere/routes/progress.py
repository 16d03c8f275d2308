"""
Progress and Leaderboard Routes
"""
from flask import Blueprint, request, jsonify, g
from learningsphere import db
from learningsphere.models.user import Progress, User
from learningsphere.services.authorization_service import require_auth
from learningsphere.services.gamification import get_or_create_progress, BADGES

progress_bp = Blueprint("progress", __name__, url_prefix="/api/progress")


@progress_bp.route("", methods=["GET"])
@require_auth
def get_my_progress():
    """Current user's XP, level, badges and streak"""
    progress = get_or_create_progress(g.current_user)
    db.session.commit()

    earned = {b["badge_id"] for b in progress.badges or []}
    available = [
        {"badge_id": badge_id, "name": d["name"], "xp_reward": d["xp_reward"]}
        for badge_id, d in BADGES.items() if badge_id not in earned
    ]
    return jsonify({
        "progress": progress.to_dict(),
        "experience": g.current_user.experience,
        "available_badges": available
    }), 200


@progress_bp.route("/leaderboard", methods=["GET"])
@require_auth
def get_leaderboard():
    """Global XP leaderboard"""
    limit = max(min(request.args.get("limit", 20, type=int), 100), 1)

    entries = db.session.query(Progress, User).join(
        User, Progress.user_id == User.id
    ).filter(User.is_banned.is_(False)).order_by(Progress.experience_points.desc()).limit(limit).all()

    leaderboard = []
    for i, (entry, user) in enumerate(entries, 1):
        leaderboard.append({
            "rank": i,
            "user_id": str(user.id),
            "name": user.name,
            "avatar_url": user.avatar_url,
            "experience_points": entry.experience_points or 0,
            "level": entry.current_level or 1,
            "badges": (entry.badges or [])[:3],
            "streak": entry.streak_current or 0
        })

    return jsonify({"leaderboard": leaderboard}), 200
