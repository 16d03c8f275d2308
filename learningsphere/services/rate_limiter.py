"""
Rate Limiter - Redis-based request throttling

Sliding-window limits per user (or client address for guests) and per
action. Protects login, password reset, and the Gemini-backed endpoints.
"""
import os
import time
import logging
from typing import Optional, Dict, Any
from functools import wraps
from flask import request, jsonify, g, make_response

logger = logging.getLogger(__name__)


# ============================================================================
# Rate Limit Configuration
# ============================================================================

RATE_LIMITS = {
    # Authentication
    "login_attempt": {"max_requests": 5, "window_seconds": 300},          # 5 per 5 min
    "password_reset": {"max_requests": 3, "window_seconds": 3600},        # 3/hour
    "register": {"max_requests": 10, "window_seconds": 3600},             # 10/hour

    # Gemini-backed operations
    "chatbot_message": {"max_requests": 20, "window_seconds": 60},        # 20/minute
    "exam_generation": {"max_requests": 10, "window_seconds": 3600},      # 10/hour
    "report_generation": {"max_requests": 20, "window_seconds": 3600},    # 20/hour
    "transcription": {"max_requests": 10, "window_seconds": 3600},        # 10/hour

    # General API calls
    "api_global": {"max_requests": 100, "window_seconds": 60},            # 100/minute
}

DEFAULT_LIMIT = {"max_requests": 100, "window_seconds": 60}
ALLOW_ALL = {"allowed": True, "remaining": 999, "reset_at": 0, "retry_after": 0}


# ============================================================================
# Rate Limiter Service
# ============================================================================

class RateLimiter:
    """
    Redis-based rate limiter with sliding window.

    Usage:
        limiter = get_rate_limiter()

        if limiter.is_rate_limited(user_id, "chatbot_message"):
            return "Rate limit exceeded", 429

        limiter.record_request(user_id, "chatbot_message")
    """

    def __init__(self, redis_url: str = None, enabled: bool = None):
        self.redis_url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379")
        self.redis_client = None
        if enabled is None:
            enabled = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
        self.enabled = enabled
        self._init_redis()

    def _init_redis(self):
        """Initialize Redis connection"""
        if not self.enabled:
            logger.info("[RateLimiter] Disabled via RATE_LIMIT_ENABLED=false")
            return

        try:
            import redis
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=5
            )
            self.redis_client.ping()
            logger.info("[RateLimiter] Redis connected")
        except Exception as e:
            logger.warning(f"[RateLimiter] Redis unavailable, limits not enforced: {e}")
            self.redis_client = None

    def _get_key(self, identity: str, action: str) -> str:
        return f"learningsphere:rate_limit:{identity}:{action}"

    def check_rate_limit(
        self,
        identity: str,
        action: str,
        max_requests: int = None,
        window_seconds: int = None
    ) -> Dict[str, Any]:
        """
        Check if an identity has exceeded the limit for an action.

        Returns:
            Dict with keys: allowed, remaining, reset_at, retry_after
        """
        if not self.enabled or not self.redis_client:
            return dict(ALLOW_ALL)

        config = RATE_LIMITS.get(action, DEFAULT_LIMIT)
        max_requests = max_requests or config["max_requests"]
        window_seconds = window_seconds or config["window_seconds"]

        key = self._get_key(identity, action)
        now = time.time()
        window_start = now - window_seconds

        try:
            pipe = self.redis_client.pipeline()
            pipe.zremrangebyscore(key, 0, window_start)
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            results = pipe.execute()
            current_count = results[1]
            oldest_entry = results[2]

            if oldest_entry:
                reset_at = oldest_entry[0][1] + window_seconds
            else:
                reset_at = now + window_seconds

            allowed = current_count < max_requests
            return {
                "allowed": allowed,
                "remaining": max(0, max_requests - current_count),
                "reset_at": int(reset_at),
                "retry_after": 0 if allowed else max(1, int(reset_at - now)),
                "limit": max_requests,
                "window": window_seconds
            }

        except Exception as e:
            logger.error(f"[RateLimiter] Check failed: {e}")
            return dict(ALLOW_ALL)

    def record_request(self, identity: str, action: str) -> bool:
        """Record a request against the window"""
        if not self.enabled or not self.redis_client:
            return True

        config = RATE_LIMITS.get(action, DEFAULT_LIMIT)
        key = self._get_key(identity, action)
        now = time.time()

        try:
            pipe = self.redis_client.pipeline()
            pipe.zadd(key, {str(now): now})
            pipe.expire(key, config["window_seconds"] + 60)
            pipe.execute()
            return True
        except Exception as e:
            logger.error(f"[RateLimiter] Record failed: {e}")
            return False

    def is_rate_limited(self, identity: str, action: str) -> bool:
        return not self.check_rate_limit(identity, action)["allowed"]

    def get_remaining(self, identity: str, action: str) -> int:
        return self.check_rate_limit(identity, action)["remaining"]


# ============================================================================
# Flask Decorator
# ============================================================================

def rate_limit(action: str, max_requests: int = None, window_seconds: int = None):
    """
    Flask decorator for rate limiting. Place it below the auth decorator so
    g.user_id is available; guests are keyed by remote address.

    Usage:
        @chatbot_bp.route("/chat", methods=["POST"])
        @optional_auth
        @rate_limit("chatbot_message")
        def chat():
            ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            limiter = get_rate_limiter()
            identity = getattr(g, "user_id", None) or request.remote_addr or "anonymous"

            result = limiter.check_rate_limit(identity, action, max_requests, window_seconds)

            if not result["allowed"]:
                logger.info(f"[RateLimiter] {identity} limited on {action}")
                response = jsonify({
                    "error": "Rate limit exceeded",
                    "retry_after": result["retry_after"]
                })
                response.status_code = 429
                response.headers["Retry-After"] = str(result["retry_after"])
                response.headers["X-RateLimit-Limit"] = str(result.get("limit", 0))
                response.headers["X-RateLimit-Remaining"] = "0"
                response.headers["X-RateLimit-Reset"] = str(result["reset_at"])
                return response

            limiter.record_request(identity, action)

            response = make_response(f(*args, **kwargs))
            if "limit" in result:
                response.headers["X-RateLimit-Limit"] = str(result["limit"])
                response.headers["X-RateLimit-Remaining"] = str(max(0, result["remaining"] - 1))
            return response

        return decorated
    return decorator


# ============================================================================
# Singleton
# ============================================================================

_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get or create rate limiter singleton"""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = RateLimiter()
    return _rate_limiter


def reset_rate_limiter():
    """Drop the singleton so the next call re-reads configuration"""
    global _rate_limiter
    _rate_limiter = None
