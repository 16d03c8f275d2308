"""
Gemini Service - generative AI for exam questions, reports, chatbot
replies, and session transcription.

Each call walks a list of models (each has its own free-tier quota) and
returns None when all of them fail, so callers can fall back to
deterministic templates.
"""
import json
import logging
import os
import re
from typing import Dict, List, Optional

from flask import current_app, has_app_context

logger = logging.getLogger(__name__)

MODELS_TO_TRY = [
    "gemini-2.5-flash",
    "gemini-2.0-flash",
    "gemini-1.5-flash",
]

AUDIO_MIME_TYPES = {
    "mp3": "audio/mp3",
    "wav": "audio/wav",
    "webm": "audio/webm",
    "ogg": "audio/ogg",
    "m4a": "audio/mp4",
    "flac": "audio/flac",
}


class TranscriptionError(Exception):
    """Speech-to-text could not be produced"""


def strip_code_fences(text: str) -> str:
    if "```" in text:
        match = re.search(r'```(?:json)?\s*([\s\S]*?)\s*```', text)
        if match:
            return match.group(1)
    return text


class GeminiService:
    """
    Thin wrapper over the google-genai client.

    Usage:
        gemini = get_gemini_service()
        questions = gemini.generate_exam_questions("Physics", "Optics", 10)
    """

    def __init__(self, api_key: str = None):
        self.api_key = api_key
        self._client = None

    def _resolve_key(self) -> Optional[str]:
        if self.api_key:
            return self.api_key
        if has_app_context() and current_app.config.get("GEMINI_API_KEY"):
            return current_app.config["GEMINI_API_KEY"]
        return os.getenv("GEMINI_API_KEY")

    @property
    def available(self) -> bool:
        return bool(self._resolve_key())

    def _get_client(self):
        if self._client is None:
            from google import genai
            self._client = genai.Client(api_key=self._resolve_key())
        return self._client

    def generate(self, contents, temperature: float = 0.4, max_output_tokens: int = 4000,
                 system_instruction: str = None) -> Optional[str]:
        """Run a prompt through the model list; None when every model fails"""
        if not self.available:
            logger.info("[Gemini] No GEMINI_API_KEY, skipping generation")
            return None

        from google.genai import types

        client = self._get_client()
        config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            system_instruction=system_instruction,
        )

        for model_name in MODELS_TO_TRY:
            try:
                response = client.models.generate_content(
                    model=model_name,
                    contents=contents,
                    config=config,
                )
                if response and response.text:
                    text = response.text.strip()
                    logger.info(f"[Gemini] {model_name} returned {len(text)} chars")
                    return text
                logger.warning(f"[Gemini] {model_name} returned empty response")
            except Exception as e:
                logger.warning(f"[Gemini] {model_name} error: {e}")

        logger.error("[Gemini] All models failed")
        return None

    # ------------------------------------------------------------------
    # Exam questions
    # ------------------------------------------------------------------

    def generate_exam_questions(self, subject: str, topic: str, num_questions: int = 10,
                                difficulty: str = "medium") -> List[Dict]:
        prompt = f"""Generate {num_questions} multiple choice questions on the topic "{topic}"
for the subject "{subject}" at {difficulty} difficulty.

Return ONLY a JSON array. Each element must have:
- "question": the question text
- "options": an array of exactly 4 answer strings
- "correctAnswer": the letter of the correct option (A, B, C, or D)
- "explanation": one sentence explaining the answer
"""
        text = self.generate(prompt, temperature=0.3, max_output_tokens=8000)
        if text:
            try:
                parsed = json.loads(strip_code_fences(text))
                questions = [
                    normalize_question(q, index) for index, q in enumerate(parsed)
                    if isinstance(q, dict)
                ][:num_questions]
                if questions:
                    return questions
            except (json.JSONDecodeError, TypeError) as e:
                logger.warning(f"[Gemini] Could not parse exam questions: {e}")

        logger.info("[Gemini] Using default exam questions")
        return default_exam_questions(subject, topic, num_questions)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    def generate_student_report(self, data: Dict) -> str:
        prompt = f"""Generate a performance report in Markdown for the learner {data['name']}.

Statistics (JSON):
{json.dumps(data, default=str)[:12000]}

Use these sections:
1. **Overall Performance Analysis**
2. **Strengths and Areas for Improvement**
3. **Specific Recommendations**
4. **Study Suggestions**
5. **Goal Setting Advice**
6. **Badge Achievements**

Be encouraging, constructive, and actionable. Return only the Markdown report."""
        return self.generate(prompt, temperature=0.6) or fallback_student_report(data)

    def generate_exam_report(self, data: Dict) -> str:
        prompt = f"""Generate an exam analysis report in Markdown for "{data['title']}".

Statistics (JSON):
{json.dumps(data, default=str)[:12000]}

Use these sections:
1. **Overall Exam Performance Analysis**
2. **Question Difficulty Analysis**
3. **Student Performance Distribution**
4. **Areas Where Students Struggled Most**
5. **Recommendations for Future Exams**

Be professional and analytical. Return only the Markdown report."""
        return self.generate(prompt, temperature=0.5) or fallback_exam_report(data)

    # ------------------------------------------------------------------
    # Speech
    # ------------------------------------------------------------------

    def transcribe_audio(self, audio_bytes: bytes, filename: str = "audio.mp3",
                         language: str = "en-US") -> str:
        if not audio_bytes:
            raise TranscriptionError("Empty audio payload")
        if not self.available:
            raise TranscriptionError("Speech-to-text is not configured")

        from google.genai import types

        extension = filename.rsplit(".", 1)[-1].lower() if "." in filename else "mp3"
        mime_type = AUDIO_MIME_TYPES.get(extension, "audio/mp3")
        contents = [
            types.Part.from_bytes(data=audio_bytes, mime_type=mime_type),
            f"Transcribe this audio verbatim. The spoken language is {language}. "
            "Return only the transcript text.",
        ]
        transcript = self.generate(contents, temperature=0.0, max_output_tokens=8000)
        if not transcript:
            raise TranscriptionError("Speech-to-text failed")
        return transcript

    def summarize_transcription(self, transcription: str) -> str:
        prompt = (
            "Summarize this tutoring session transcript in 100 words or less. "
            "Return only the summary.\n\n" + transcription[:30000]
        )
        summary = self.generate(prompt, temperature=0.3, max_output_tokens=400)
        if summary:
            return summary
        words = transcription.split()
        return " ".join(words[:100]) + ("..." if len(words) > 100 else "")


# ============================================================================
# Deterministic fallbacks
# ============================================================================

def normalize_question(raw: Dict, index: int) -> Dict:
    options = raw.get("options")
    if not isinstance(options, list) or len(options) < 4:
        options = ["Option A", "Option B", "Option C", "Option D"]
    answer = str(raw.get("correctAnswer") or "A").strip().upper()[:1]
    if answer not in ("A", "B", "C", "D"):
        answer = "A"
    return {
        "question": raw.get("question") or raw.get("questionText") or f"Question {index + 1}",
        "options": [str(o) for o in options[:4]],
        "correctAnswer": answer,
        "explanation": raw.get("explanation", ""),
    }


def default_exam_questions(subject: str, topic: str, num_questions: int) -> List[Dict]:
    return [
        {
            "question": f"{subject} ({topic}) - Question {i + 1}: which statement is correct?",
            "options": [
                f"Statement A about {topic}",
                f"Statement B about {topic}",
                f"Statement C about {topic}",
                f"Statement D about {topic}",
            ],
            "correctAnswer": "A",
            "explanation": "",
        }
        for i in range(num_questions)
    ]


def _tier(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    return "developing"


def fallback_student_report(data: Dict) -> str:
    exam_stats = data.get("exam_stats") or {}
    practice = data.get("practice_stats") or {}
    adaptive = data.get("adaptive_stats") or {}
    progress = data.get("progress") or {}
    average = exam_stats.get("averagePercentage", 0)

    return f"""# Performance Report for {data['name']}

## 1. Overall Performance Analysis
{data['name']} is at level {progress.get('current_level', 1)} with {progress.get('experience_points', 0)} XP and {len(progress.get('badges', []))} badges. The average exam score is {average}%, which indicates {_tier(average)} mastery.

## 2. Strengths and Areas for Improvement
- **Exams**: {exam_stats.get('passed', 0)} of {exam_stats.get('totalExams', 0)} passed.
- **Practice**: {practice.get('totalSessions', 0)} sessions at {practice.get('averageAccuracy', 0)}% average accuracy.
- **Adaptive exams**: {adaptive.get('totalExams', 0)} completed, best ability {adaptive.get('bestAbility', 0)}.
- **Streak**: {progress.get('streak', {}).get('current', 0)} days current.

## 3. Specific Recommendations
- Review questions answered incorrectly in recent practice sessions.
- Take a sectional test at the next difficulty tier once accuracy stays above 70%.

## 4. Study Suggestions
- Short daily practice keeps the streak alive and earns badge bonuses.

## 5. Goal Setting Advice
- Aim for {min(100, round(average) + 10)}% on the next scheduled exam.
"""


def fallback_exam_report(data: Dict) -> str:
    hardest = data.get("hardest_questions") or []
    hardest_lines = "\n".join(
        f"- Q{q['index'] + 1}: {q['correct_rate']}% correct" for q in hardest
    ) or "- Not enough submissions yet."
    return f"""# Exam Report: {data['title']}

## 1. Overall Exam Performance Analysis
{data.get('participants', 0)} participants, average {data.get('average_percentage', 0)}%, pass rate {data.get('pass_rate', 0)}%.

## 2. Question Difficulty Analysis
{hardest_lines}

## 3. Recommendations for Future Exams
- Revisit the topics behind the lowest-scoring questions before the next exam.
"""


# Singleton
_gemini_service: Optional[GeminiService] = None


def get_gemini_service() -> GeminiService:
    """Get or create Gemini service singleton"""
    global _gemini_service
    if _gemini_service is None:
        _gemini_service = GeminiService()
    return _gemini_service
