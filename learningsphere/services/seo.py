"""
Blog SEO helpers: slugs, meta fields, keyword extraction, scoring,
structured data, and the sitemap.
"""
import math
import re
from collections import Counter
from typing import Dict, Iterable, List, Optional
from xml.sax.saxutils import escape

META_TITLE_MAX = 60
META_DESCRIPTION_MAX = 160
EXCERPT_MAX = 300
WORDS_PER_MINUTE = 200

STOPWORDS = {
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "from", "as", "is", "was", "are", "were", "been", "be", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should", "may",
    "might", "must", "can", "this", "that", "these", "those", "i", "you", "he",
    "she", "it", "we", "they", "what", "which", "who", "when", "where", "why",
    "how", "all", "each", "every", "both", "few", "more", "most", "other", "some",
    "such", "only", "own", "same", "than", "too", "very", "just", "also", "into",
    "your", "their", "there", "then", "them", "about", "over", "after", "before",
}


def slugify(text: str) -> str:
    slug = re.sub(r"[^\w\s-]", "", (text or "").lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug or "post"


def unique_slug(title: str, exists) -> str:
    """Slug for title, suffixed -1, -2, ... until exists(slug) is False"""
    base = slugify(title)
    slug = base
    counter = 1
    while exists(slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug


def strip_html(content: str) -> str:
    return re.sub(r"<[^>]+>", " ", content or "")


def word_count(content: str) -> int:
    return len(strip_html(content).split())


def read_time(content: str) -> int:
    return max(1, math.ceil(word_count(content) / WORDS_PER_MINUTE))


def truncate(text: str, limit: int) -> str:
    """Cut to limit characters, using an ellipsis when shortened"""
    text = (text or "").strip()
    if len(text) <= limit:
        return text
    return text[:limit - 3].rstrip() + "..."


def make_excerpt(content: str, limit: int = EXCERPT_MAX) -> str:
    plain = " ".join(strip_html(content).split())
    return truncate(plain, limit)


def extract_keywords(content: str, limit: int = 10) -> List[str]:
    words = re.findall(r"[a-z]+", strip_html(content).lower())
    counts = Counter(w for w in words if len(w) > 3 and w not in STOPWORDS)
    return [word for word, _ in counts.most_common(limit)]


def parse_tags(tags) -> List[str]:
    """Accept a list or a comma-separated string"""
    if not tags:
        return []
    if isinstance(tags, str):
        tags = tags.split(",")
    return [t.strip() for t in tags if t and str(t).strip()]


def calculate_seo_score(title: str, meta_description: str, content: str,
                        featured_image: Optional[str], tags: Iterable[str],
                        keywords: Iterable[str], excerpt: str) -> int:
    """Weighted field-length heuristic, 0-100"""
    score = 0

    title_len = len(title or "")
    if 30 <= title_len <= 60:
        score += 20
    elif title_len >= 20:
        score += 10

    meta_len = len(meta_description or "")
    if 120 <= meta_len <= 160:
        score += 15
    elif meta_len >= 100:
        score += 10

    words = word_count(content)
    if words >= 1000:
        score += 20
    elif words >= 500:
        score += 15
    elif words >= 300:
        score += 10

    if featured_image:
        score += 10

    tag_count = len(list(tags or []))
    if tag_count >= 3:
        score += 10
    elif tag_count >= 1:
        score += 5

    keyword_count = len(list(keywords or []))
    if keyword_count >= 5:
        score += 15
    elif keyword_count >= 3:
        score += 10

    excerpt_len = len(excerpt or "")
    if excerpt_len >= 100:
        score += 10
    elif excerpt_len >= 50:
        score += 5

    return min(score, 100)


def structured_data(blog, base_url: str) -> Dict:
    """schema.org BlogPosting for a blog post"""
    url = blog.canonical_url or f"{base_url.rstrip('/')}/blogs/{blog.slug}"
    data = {
        "@context": "https://schema.org",
        "@type": "BlogPosting",
        "headline": blog.meta_title or blog.title,
        "description": blog.meta_description or blog.excerpt,
        "keywords": ", ".join(blog.keywords or []),
        "articleSection": blog.category,
        "wordCount": word_count(blog.content),
        "datePublished": blog.published_at.isoformat() if blog.published_at else None,
        "dateModified": blog.updated_at.isoformat() if blog.updated_at else None,
        "mainEntityOfPage": {"@type": "WebPage", "@id": url},
        "publisher": {"@type": "Organization", "name": "LearningSphere"},
    }
    if blog.featured_image:
        data["image"] = blog.featured_image
    if blog.author:
        data["author"] = {"@type": "Person", "name": blog.author.name}
    return data


def build_sitemap(blogs, base_url: str) -> str:
    base = base_url.rstrip("/")
    entries = [
        "  <url>\n"
        f"    <loc>{escape(f'{base}/blogs')}</loc>\n"
        "    <changefreq>daily</changefreq>\n"
        "    <priority>0.8</priority>\n"
        "  </url>"
    ]
    for blog in blogs:
        lastmod = (blog.updated_at or blog.published_at or blog.created_at)
        entries.append(
            "  <url>\n"
            f"    <loc>{escape(f'{base}/blogs/{blog.slug}')}</loc>\n"
            f"    <lastmod>{lastmod.strftime('%Y-%m-%d') if lastmod else ''}</lastmod>\n"
            "    <changefreq>weekly</changefreq>\n"
            "    <priority>0.6</priority>\n"
            "  </url>"
        )
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">\n'
        + "\n".join(entries)
        + "\n</urlset>"
    )
