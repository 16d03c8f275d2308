"""
Blog post model
"""
from datetime import datetime
from sqlalchemy import JSON
from learningsphere import db
from learningsphere.models.user import generate_uuid

BLOG_CATEGORIES = [
    "Study Tips",
    "Exam Preparation",
    "Learning Strategies",
    "Technology",
    "Career Guidance",
    "Education News",
    "Success Stories",
    "General",
]


class Blog(db.Model):
    __tablename__ = "blogs"

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    title = db.Column(db.String(200), nullable=False)
    slug = db.Column(db.String(250), unique=True, nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    excerpt = db.Column(db.String(300))
    featured_image = db.Column(db.String(500))
    tags = db.Column(JSON, default=list)
    keywords = db.Column(JSON, default=list)
    meta_title = db.Column(db.String(60))
    meta_description = db.Column(db.String(160))
    canonical_url = db.Column(db.String(500))
    category = db.Column(db.String(50), default="General", index=True)
    author_id = db.Column(db.String(36), db.ForeignKey("users.id"))
    is_published = db.Column(db.Boolean, default=False, index=True)
    published_at = db.Column(db.DateTime)
    read_time = db.Column(db.Integer, default=1)  # minutes
    views = db.Column(db.Integer, default=0)
    likes = db.Column(db.Integer, default=0)
    shares = db.Column(db.Integer, default=0)
    seo_score = db.Column(db.Integer, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    author = db.relationship("User", foreign_keys=[author_id])

    def to_dict(self, include_content: bool = True):
        data = {
            "id": str(self.id),
            "title": self.title,
            "slug": self.slug,
            "excerpt": self.excerpt,
            "featured_image": self.featured_image,
            "tags": self.tags or [],
            "keywords": self.keywords or [],
            "meta_title": self.meta_title,
            "meta_description": self.meta_description,
            "canonical_url": self.canonical_url,
            "category": self.category,
            "author": {"id": self.author.id, "name": self.author.name} if self.author else None,
            "is_published": bool(self.is_published),
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "read_time": self.read_time,
            "views": self.views or 0,
            "likes": self.likes or 0,
            "shares": self.shares or 0,
            "seo_score": self.seo_score or 0,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None
        }
        if include_content:
            data["content"] = self.content
        return data
