import importlib
import json
import logging
import os

import requests
from django.conf import settings

from .constants import MAX_SUGGESTED_REPLIES


logger = logging.getLogger(__name__)

FETCH_FAILED = "fetch_failed"
BAD_JSON = "bad_json"
MISSING_FIELDS = "missing_fields"

SONG_LOOKUP_MESSAGES = {
    FETCH_FAILED: "Could not fetch song details from that link. Check it and try again.",
    BAD_JSON: "The music service sent back something unreadable. Please try again.",
    MISSING_FIELDS: "Could not find a title and artist for that link.",
}


class AIHelperError(Exception):
    """A reply suggestion could not be produced; ``str(exc)`` is user-facing."""


class SongLookupError(Exception):
    def __init__(self, reason, detail=""):
        super().__init__(SONG_LOOKUP_MESSAGES[reason])
        self.reason = reason
        self.detail = detail


def _strip_code_fence(text: str) -> str:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = stripped.strip("`")
        if stripped.startswith("json"):
            stripped = stripped[4:].strip()
    return stripped


def _extract_json_object(text: str):
    if not text:
        return {}
    stripped = _strip_code_fence(text)
    start = stripped.find("{")
    end = stripped.rfind("}")
    if start == -1 or end == -1 or end <= start:
        return {}
    try:
        parsed = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError:
        return {}
    return parsed if isinstance(parsed, dict) else {}


def _extract_json_array(text: str):
    if not text:
        return []
    stripped = _strip_code_fence(text)
    start = stripped.find("[")
    end = stripped.rfind("]")
    if start == -1 or end == -1 or end <= start:
        return []
    try:
        parsed = json.loads(stripped[start : end + 1])
    except json.JSONDecodeError:
        return []
    return parsed if isinstance(parsed, list) else []


def _gemini_api_key():
    return os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")


def _gemini_generate(prompt: str, api_key: str):
    genai = importlib.import_module("google.genai")
    client = genai.Client(api_key=api_key)
    response = client.models.generate_content(
        model=settings.GEMINI_MODEL,
        contents=prompt,
    )
    return (response.text or "").strip()


def _normalize_gemini_error(exc: Exception) -> str:
    lowered = str(exc).lower()
    if "resource_exhausted" in lowered or "quota" in lowered or "429" in lowered:
        return "Gemini quota exceeded"
    if "api key" in lowered or "unauth" in lowered or "permission" in lowered:
        return "invalid Gemini API key or permissions"
    return "Gemini unavailable"


def _clean_replies(raw_replies):
    replies = []
    for reply in raw_replies:
        if not isinstance(reply, str):
            continue
        cleaned = reply.strip().strip('"').strip()
        if cleaned and cleaned not in replies:
            replies.append(cleaned)
    return replies[:MAX_SUGGESTED_REPLIES]


def _parse_replies(text: str):
    replies = _clean_replies(_extract_json_array(text))
    if replies:
        return replies
    parsed = _extract_json_object(text)
    return _clean_replies(parsed.get("suggested_replies") or parsed.get("suggestedReplies") or [])


def generate_suggested_replies(note: str):
    note = (note or "").strip()
    if not note:
        raise AIHelperError("Write a note first to get reply suggestions.")
    if not settings.ENABLE_AI:
        raise AIHelperError("AI suggestions are disabled for this environment.")

    api_key = _gemini_api_key()
    if not api_key:
        raise AIHelperError("Could not fetch suggestions: no AI key configured.")

    prompt = (
        "You are a relationship expert specializing in empathetic communication.\n"
        "Based on the sentiment expressed in the following note, suggest "
        f"{MAX_SUGGESTED_REPLIES} different replies that are supportive, caring, "
        "and thoughtful.\n"
        "Return JSON only: an array of strings.\n\n"
        f"Note: {note}"
    )

    try:
        text = _gemini_generate(prompt, api_key)
    except Exception as exc:
        reason = _normalize_gemini_error(exc)
        logger.warning("Reply suggestions failed: %s", reason)
        raise AIHelperError(f"Could not fetch suggestions: {reason}.") from exc

    replies = _parse_replies(text)
    if not replies:
        logger.warning("Gemini returned no usable replies")
        raise AIHelperError("Could not fetch suggestions. Please try again.")
    return {"suggested_replies": replies}


def extract_song_details(url: str):
    """Look up the title and artist of a streaming link via its oEmbed endpoint."""
    try:
        response = requests.get(
            settings.SONG_OEMBED_ENDPOINT,
            params={"url": url},
            timeout=settings.SONG_OEMBED_TIMEOUT,
        )
    except requests.RequestException as exc:
        logger.warning("oEmbed request for %s failed: %s", url, exc)
        raise SongLookupError(FETCH_FAILED, str(exc)) from exc

    if not response.ok:
        logger.warning(
            "oEmbed request for %s returned %s: %s",
            url,
            response.status_code,
            response.text[:200],
        )
        raise SongLookupError(FETCH_FAILED, f"status {response.status_code}")

    try:
        data = response.json()
    except ValueError as exc:
        logger.warning("oEmbed response for %s was not JSON", url)
        raise SongLookupError(BAD_JSON) from exc

    if not isinstance(data, dict):
        raise SongLookupError(BAD_JSON)

    song_title = data.get("title")
    song_artist = data.get("author_name")
    if not isinstance(song_title, str) or not isinstance(song_artist, str):
        raise SongLookupError(MISSING_FIELDS)
    if not song_title.strip() or not song_artist.strip():
        raise SongLookupError(MISSING_FIELDS)

    return {"song_title": song_title.strip(), "song_artist": song_artist.strip()}


def song_display_title(details) -> str:
    return f"{details['song_title']} - {details['song_artist']}"
