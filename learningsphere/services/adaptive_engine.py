"""
Client for the external adaptive exam engine (item selection and
ability estimation).
"""
import logging
from typing import Any, Dict, Optional

import requests
from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://adaptive-exam-model.onrender.com/api"


class AdaptiveEngineError(Exception):
    """The adaptive engine was unreachable or rejected the request"""


def format_question(question: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Map the engine's question payload to the API's camelCase shape"""
    if not question:
        return None
    return {
        "id": question.get("id"),
        "question": question.get("question"),
        "options": question.get("options"),
        "difficulty": question.get("difficulty"),
        "difficultyNumeric": question.get("difficulty_numeric"),
    }


class AdaptiveEngineClient:
    def __init__(self, base_url: str = None, timeout: int = None):
        self._base_url = base_url
        self._timeout = timeout

    @property
    def base_url(self) -> str:
        if self._base_url:
            return self._base_url.rstrip("/")
        if has_app_context():
            return current_app.config.get("ADAPTIVE_API_BASE_URL", DEFAULT_BASE_URL).rstrip("/")
        return DEFAULT_BASE_URL

    @property
    def timeout(self) -> int:
        if self._timeout:
            return self._timeout
        if has_app_context():
            return current_app.config.get("ADAPTIVE_API_TIMEOUT", 30)
        return 30

    def _request(self, method: str, path: str, payload: Dict = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            response = requests.request(method, url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            logger.error(f"[AdaptiveEngine] {method} {path} failed: {e}")
            raise AdaptiveEngineError(f"Adaptive engine request failed: {e}") from e
        except ValueError as e:
            raise AdaptiveEngineError("Adaptive engine returned invalid JSON") from e

        if not data.get("success"):
            logger.warning(f"[AdaptiveEngine] {method} {path} unsuccessful: {data}")
            raise AdaptiveEngineError(data.get("error") or "Adaptive engine reported failure")
        return data

    def start(self, user_id: str) -> Dict[str, Any]:
        """Returns {session_id, question, user_ability}"""
        return self._request("POST", "/adaptive/start", {"user_id": user_id})

    def submit(self, session_id: str, question_id, answer, time_spent: float) -> Dict[str, Any]:
        """Returns {is_correct, correct_answer, user_ability, next_question, quiz_complete}"""
        return self._request("POST", "/adaptive/submit", {
            "session_id": session_id,
            "question_id": question_id,
            "answer": answer,
            "time_spent": float(time_spent),
        })

    def resume(self, session_id: str) -> Dict[str, Any]:
        """Returns {question}"""
        return self._request("GET", f"/adaptive/resume/{session_id}")


# Singleton
_client: Optional[AdaptiveEngineClient] = None


def get_adaptive_engine() -> AdaptiveEngineClient:
    global _client
    if _client is None:
        _client = AdaptiveEngineClient()
    return _client
