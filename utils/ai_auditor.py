"""Gemini integration for voice-note transcription and resolution photo audits."""
import json
import os
import re
from typing import Any, Dict

from flask import current_app
from google import genai
from google.genai import types

from utils.media_utils import MediaValidationError, decode_data_uri, simple_mime_type

TRANSCRIPTION_PROMPT = (
    "Listen carefully and transcribe the audio text exactly as spoken. "
    "Respond ONLY with the transcript text. "
    "If the language is Urdu or Hindi, provide a transliteration."
)

AUDIT_PROMPT = (
    "ACT AS A STRICT SOCIETY AUDITOR. Compare Image 1 (Problem) and Image 2 (Resolution). "
    "CHECK CAREFULLY: is the issue shown in Image 1 now absent in Image 2? "
    "Is the trash gone? Is the area clean? Is the leak, damage or fault repaired? "
    "If the problem is still visible, IT IS NOT FIXED. "
    "Respond ONLY with JSON: "
    "{\"isResolved\": boolean, \"reason\": \"Be extremely detailed about what is still wrong if not fixed\"}."
)


class AIServiceError(Exception):
    """Raised when Gemini cannot return a usable result."""


def _first_json_block(text: str) -> str:
    """Extract the first JSON object block from free-form text."""
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return text


def _safe_json_loads(raw_text: str) -> Dict[str, Any]:
    """Parse JSON robustly, tolerating leading/trailing noise or code fences."""
    cleaned = raw_text.strip()
    cleaned = re.sub(r"^```[a-zA-Z0-9_-]*", "", cleaned).strip()
    cleaned = re.sub(r"```$", "", cleaned).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        block = _first_json_block(cleaned)
        return json.loads(block)


def _coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if value in {"true", "True", "1", 1}:  # tolerant parsing
        return True
    if value in {"false", "False", "0", 0}:
        return False
    return None


def _client() -> genai.Client:
    api_key = current_app.config.get("GEMINI_API_KEY") or os.getenv("GEMINI_API_KEY")
    if not api_key:
        raise AIServiceError("GEMINI_API_KEY is not configured")
    return genai.Client(api_key=api_key)


def _response_text(response) -> str:
    raw_text = (getattr(response, "text", None) or "").strip()
    if not raw_text and getattr(response, "candidates", None):
        try:
            parts = response.candidates[0].content.parts or []
            raw_text = "".join(getattr(p, "text", "") or "" for p in parts).strip()
        except (AttributeError, IndexError, TypeError):
            raw_text = ""
    return raw_text


def transcribe_audio(audio_bytes: bytes, mime_type: str) -> str:
    """Return the spoken text of a voice note."""
    if not audio_bytes:
        raise AIServiceError("No audio to transcribe")
    client = _client()
    model_name = current_app.config.get("GEMINI_AUDIO_MODEL", "gemini-2.5-flash")
    current_app.logger.info(
        "Dispatching Gemini transcription",
        extra={"model": model_name, "mime_type": simple_mime_type(mime_type), "bytes": len(audio_bytes)},
    )

    try:
        response = client.models.generate_content(
            model=model_name,
            contents=[
                types.Part.from_bytes(data=audio_bytes, mime_type=simple_mime_type(mime_type)),
                types.Part.from_text(text=TRANSCRIPTION_PROMPT),
            ],
        )
    except Exception as exc:  # pragma: no cover - relies on remote service
        raise AIServiceError("Gemini transcription request failed") from exc

    transcript = _response_text(response)
    if not transcript:
        raise AIServiceError("Gemini returned an empty transcript")
    return transcript


def best_effort_transcript(voice_mail: str | None) -> str | None:
    """Transcribe a stored voice note; failures are logged and yield ``None``."""
    if not voice_mail:
        return None
    try:
        audio_bytes, mime_type = decode_data_uri(voice_mail)
        return transcribe_audio(audio_bytes, mime_type)
    except (AIServiceError, MediaValidationError) as exc:
        current_app.logger.warning("Transcription failed", extra={"error": str(exc)})
        return None


def compare_resolution_images(
    problem_bytes: bytes,
    problem_mime: str,
    fix_bytes: bytes,
    fix_mime: str,
) -> Dict[str, Any]:
    """Ask Gemini whether the problem pictured first is gone in the second photo."""
    client = _client()
    model_name = current_app.config.get("GEMINI_VISION_MODEL", "gemini-2.5-flash")
    current_app.logger.info("Dispatching Gemini resolution audit", extra={"model": model_name})

    try:
        response = client.models.generate_content(
            model=model_name,
            contents=[
                types.Part.from_bytes(data=problem_bytes, mime_type=problem_mime),
                types.Part.from_bytes(data=fix_bytes, mime_type=fix_mime),
                types.Part.from_text(text=AUDIT_PROMPT),
            ],
            config=types.GenerateContentConfig(response_mime_type="application/json"),
        )
    except Exception as exc:  # pragma: no cover - relies on remote service
        raise AIServiceError("Gemini audit request failed") from exc

    raw_text = _response_text(response)
    if not raw_text:
        raise AIServiceError("Gemini audit returned empty response")
    try:
        payload = _safe_json_loads(raw_text)
    except json.JSONDecodeError as exc:
        raise AIServiceError("Gemini audit returned non-JSON output") from exc
    return parse_audit_payload(payload)


def parse_audit_payload(payload: Any) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise AIServiceError("Gemini audit payload is not an object")
    is_resolved = _coerce_bool(payload.get("isResolved", payload.get("is_resolved")))
    if is_resolved is None:
        raise AIServiceError("Gemini audit did not return a resolution flag")
    reason = str(payload.get("reason") or "").strip() or (
        "Resolution confirmed." if is_resolved else "Issue still visible."
    )
    return {"isResolved": is_resolved, "reason": reason}


def audit_resolution(problem_image: str, fix_image: str) -> Dict[str, Any]:
    """Audit a resolution from the stored problem and fix photos (data URIs)."""
    try:
        problem_bytes, problem_mime = decode_data_uri(problem_image)
        fix_bytes, fix_mime = decode_data_uri(fix_image)
    except MediaValidationError as exc:
        raise AIServiceError("Stored photo could not be decoded") from exc
    return compare_resolution_images(problem_bytes, problem_mime, fix_bytes, fix_mime)
