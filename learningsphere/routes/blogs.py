"""
Blog Routes - public SEO-friendly posts and admin authoring
"""
import logging
from datetime import datetime

from flask import Blueprint, request, jsonify, g, current_app, Response
from sqlalchemy import or_

from learningsphere import db
from learningsphere.models.blog import Blog, BLOG_CATEGORIES
from learningsphere.services import seo
from learningsphere.services.authorization_service import require_role

logger = logging.getLogger(__name__)

blogs_bp = Blueprint("blogs", __name__, url_prefix="/api/blogs")

TITLE_MAX = 200
RELATED_LIMIT = 3


def _slug_taken(slug: str, exclude_id: str = None) -> bool:
    query = Blog.query.filter_by(slug=slug)
    if exclude_id:
        query = query.filter(Blog.id != exclude_id)
    return query.first() is not None


def _apply(blog: Blog, data: dict):
    """Copy authorable fields onto the blog and derive the SEO fields; returns an error or None"""
    if "title" in data:
        title = (data.get("title") or "").strip()
        if not title:
            return "Title is required"
        if len(title) > TITLE_MAX:
            return f"Title must be at most {TITLE_MAX} characters"
        if title != blog.title:
            blog.slug = seo.unique_slug(title, lambda s: _slug_taken(s, blog.id))
        blog.title = title

    if "content" in data:
        if not (data.get("content") or "").strip():
            return "Content is required"
        blog.content = data["content"]

    if "category" in data:
        if data["category"] not in BLOG_CATEGORIES:
            return f"Category must be one of: {', '.join(BLOG_CATEGORIES)}"
        blog.category = data["category"]

    for field, attr in (("featuredImage", "featured_image"), ("canonicalUrl", "canonical_url")):
        if field in data:
            setattr(blog, attr, data[field] or None)

    if "tags" in data:
        blog.tags = seo.parse_tags(data["tags"])

    if data.get("keywords"):
        blog.keywords = seo.parse_tags(data["keywords"])
    elif "content" in data or not blog.keywords:
        blog.keywords = seo.extract_keywords(blog.content)

    if data.get("excerpt"):
        blog.excerpt = seo.truncate(data["excerpt"], seo.EXCERPT_MAX)
    elif "content" in data or not blog.excerpt:
        blog.excerpt = seo.make_excerpt(blog.content)

    if data.get("metaTitle"):
        blog.meta_title = seo.truncate(data["metaTitle"], seo.META_TITLE_MAX)
    elif "title" in data or not blog.meta_title:
        blog.meta_title = seo.truncate(blog.title, seo.META_TITLE_MAX)

    if data.get("metaDescription"):
        blog.meta_description = seo.truncate(data["metaDescription"], seo.META_DESCRIPTION_MAX)
    elif not blog.meta_description:
        blog.meta_description = seo.truncate(blog.excerpt, seo.META_DESCRIPTION_MAX)

    if "isPublished" in data:
        blog.is_published = bool(data["isPublished"])
        if blog.is_published and not blog.published_at:
            blog.published_at = datetime.utcnow()

    blog.read_time = seo.read_time(blog.content)
    blog.seo_score = seo.calculate_seo_score(
        blog.title, blog.meta_description, blog.content, blog.featured_image,
        blog.tags, blog.keywords, blog.excerpt,
    )
    return None


def _related(blog: Blog):
    candidates = Blog.query.filter(Blog.is_published.is_(True), Blog.id != blog.id) \
        .order_by(Blog.published_at.desc()).all()
    tags = set(blog.tags or [])
    related = [b for b in candidates if b.category == blog.category or tags & set(b.tags or [])]
    return related[:RELATED_LIMIT]


# ==================== Public ====================

@blogs_bp.route("", methods=["GET"])
def list_blogs():
    """Published posts, newest first"""
    page = max(request.args.get("page", 1, type=int), 1)
    limit = min(max(request.args.get("limit", 12, type=int), 1), 50)

    query = Blog.query.filter(Blog.is_published.is_(True))

    category = request.args.get("category")
    if category:
        query = query.filter(Blog.category == category)

    search = request.args.get("search")
    if search:
        query = query.filter(or_(
            Blog.title.ilike(f"%{search}%"),
            Blog.excerpt.ilike(f"%{search}%"),
            Blog.content.ilike(f"%{search}%"),
        ))

    total = query.count()
    blogs = query.order_by(Blog.published_at.desc()).offset((page - 1) * limit).limit(limit).all()

    return jsonify({
        "blogs": [b.to_dict(include_content=False) for b in blogs],
        "categories": BLOG_CATEGORIES,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "pages": (total + limit - 1) // limit
        }
    }), 200


@blogs_bp.route("/sitemap.xml", methods=["GET"])
def sitemap():
    blogs = Blog.query.filter(Blog.is_published.is_(True)).order_by(Blog.published_at.desc()).all()
    xml = seo.build_sitemap(blogs, current_app.config["FRONTEND_URL"])
    return Response(xml, mimetype="application/xml")


@blogs_bp.route("/<slug>", methods=["GET"])
def get_blog(slug):
    blog = Blog.query.filter_by(slug=slug, is_published=True).first()
    if not blog:
        return jsonify({"error": "Blog not found"}), 404

    blog.views = (blog.views or 0) + 1
    db.session.commit()

    return jsonify({
        "blog": blog.to_dict(),
        "relatedBlogs": [b.to_dict(include_content=False) for b in _related(blog)],
        "structuredData": seo.structured_data(blog, current_app.config["FRONTEND_URL"])
    }), 200


# ==================== Admin ====================

@blogs_bp.route("/admin/all", methods=["GET"])
@require_role("admin")
def list_all_blogs():
    blogs = Blog.query.order_by(Blog.created_at.desc()).all()
    return jsonify({"blogs": [b.to_dict(include_content=False) for b in blogs]}), 200


@blogs_bp.route("/admin", methods=["POST"])
@require_role("admin")
def create_blog():
    data = request.get_json() or {}

    for field in ("title", "content"):
        if not data.get(field):
            return jsonify({"error": f"Missing required field: {field}"}), 400

    blog = Blog(author_id=g.user_id, category="General", tags=[], keywords=[],
                is_published=False, views=0, likes=0, shares=0)
    error = _apply(blog, data)
    if error:
        return jsonify({"error": error}), 400

    db.session.add(blog)
    db.session.commit()

    logger.info(f"[Blogs] {g.user_id} created '{blog.slug}' (SEO {blog.seo_score})")
    return jsonify({"message": "Blog created", "blog": blog.to_dict()}), 201


@blogs_bp.route("/admin/<blog_id>", methods=["PUT"])
@require_role("admin")
def update_blog(blog_id):
    blog = Blog.query.get(blog_id)
    if not blog:
        return jsonify({"error": "Blog not found"}), 404

    error = _apply(blog, request.get_json() or {})
    if error:
        db.session.rollback()
        return jsonify({"error": error}), 400

    db.session.commit()
    return jsonify({"message": "Blog updated", "blog": blog.to_dict()}), 200


@blogs_bp.route("/admin/<blog_id>", methods=["DELETE"])
@require_role("admin")
def delete_blog(blog_id):
    blog = Blog.query.get(blog_id)
    if not blog:
        return jsonify({"error": "Blog not found"}), 404

    db.session.delete(blog)
    db.session.commit()

    logger.info(f"[Blogs] {g.user_id} deleted blog {blog_id}")
    return jsonify({"message": "Blog deleted"}), 200
