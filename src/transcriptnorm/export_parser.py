"""Parse call transcript and user directory JSON exports."""

from __future__ import annotations

import json
import logging
import math
from datetime import datetime, timezone
from pathlib import Path

from .models import RawCall, Segment, Sentence, User

log = logging.getLogger(__name__)


class ExportFormatError(ValueError):
    """Raised when an export file does not match the expected schema."""

    def __init__(self, message: str, call_id: str | None = None):
        if call_id is not None:
            message = f"call {call_id}: {message}"
        super().__init__(message)
        self.call_id = call_id


def _load_json(path: Path):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ExportFormatError(f"{path}: invalid JSON ({e})") from e
    except UnicodeDecodeError as e:
        raise ExportFormatError(f"{path}: not valid UTF-8 ({e})") from e


def _records(payload, key: str, path: Path) -> list:
    """Return the record array, either wrapped under ``key`` or bare."""
    if isinstance(payload, dict):
        if key not in payload:
            raise ExportFormatError(f"{path}: missing '{key}' array")
        payload = payload[key]
    if not isinstance(payload, list):
        raise ExportFormatError(f"{path}: '{key}' must be an array")
    return payload


def parse_calls(calls_path: Path) -> list[RawCall]:
    """Parse the call transcripts export. Any malformed call fails the batch."""
    records = _records(_load_json(calls_path), "callTranscripts", calls_path)
    calls = [_parse_call(record) for record in records]
    log.debug("Parsed %d calls from %s", len(calls), calls_path)
    return calls


def parse_users(users_path: Path) -> list[User]:
    """Parse the user directory export."""
    records = _records(_load_json(users_path), "users", users_path)
    users = [_parse_user(record) for record in records]
    log.debug("Parsed %d user entries from %s", len(users), users_path)
    return users


def _parse_offset(value, call_id: str) -> int | None:
    """Parse a millisecond offset. Numbers and numeric strings are accepted."""
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        raise ExportFormatError(f"invalid offset {value!r}", call_id)
    try:
        number = float(value) if isinstance(value, str) else value
        if not math.isfinite(number) or number < 0:
            raise ValueError(value)
        return int(number)
    except (ValueError, OverflowError):
        raise ExportFormatError(f"invalid offset {value!r}", call_id) from None


def _parse_sentence(raw, call_id: str) -> Sentence:
    if not isinstance(raw, dict):
        raise ExportFormatError("sentence must be an object", call_id)
    text = raw.get("text")
    if not isinstance(text, str):
        raise ExportFormatError("sentence is missing 'text'", call_id)

    # Missing start sorts first; missing end collapses onto the start
    start = _parse_offset(raw.get("start"), call_id)
    end = _parse_offset(raw.get("end"), call_id)
    if start is None:
        start = 0
    if end is None:
        end = start
    if start > end:
        raise ExportFormatError(
            f"sentence starts after it ends ({start} > {end})", call_id
        )
    return Sentence(start_ms=start, end_ms=end, text=text)


def _parse_segment(raw, call_id: str) -> Segment:
    if not isinstance(raw, dict):
        raise ExportFormatError("transcript segment must be an object", call_id)
    speaker_id = raw.get("speakerId")
    if speaker_id is None or speaker_id == "":
        raise ExportFormatError("segment is missing 'speakerId'", call_id)
    sentences = raw.get("sentences")
    if not isinstance(sentences, list):
        raise ExportFormatError("segment is missing 'sentences' array", call_id)
    topic = raw.get("topic")
    return Segment(
        speaker_id=str(speaker_id),
        topic=str(topic) if topic is not None else None,
        sentences=[_parse_sentence(s, call_id) for s in sentences],
    )


def _parse_call(raw) -> RawCall:
    if not isinstance(raw, dict):
        raise ExportFormatError("call record must be an object")
    call_id = raw.get("callId")
    if call_id is None or call_id == "":
        raise ExportFormatError("call record is missing 'callId'")
    call_id = str(call_id)
    transcript = raw.get("transcript")
    if not isinstance(transcript, list):
        raise ExportFormatError("missing 'transcript' array", call_id)
    return RawCall(
        call_id=call_id,
        segments=[_parse_segment(seg, call_id) for seg in transcript],
    )


def _parse_user(raw) -> User:
    if not isinstance(raw, dict):
        raise ExportFormatError("user record must be an object")
    user_id = raw.get("id")
    if user_id is None or user_id == "":
        raise ExportFormatError("user record is missing 'id'")
    return User(
        id=str(user_id),
        first_name=raw.get("firstName"),
        last_name=raw.get("lastName"),
        email=raw.get("emailAddress"),
        title=raw.get("title"),
        created=_parse_timestamp(raw.get("created")),
    )


def _parse_timestamp(value: str | int | float | None) -> datetime | None:
    """Parse a timestamp string or number into an aware datetime."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        # Epoch millis or seconds
        if value > 1e12:
            value = value / 1000
        return datetime.fromtimestamp(value, tz=timezone.utc)
    if isinstance(value, str):
        for fmt in ("%Y-%m-%dT%H:%M:%S.%fZ", "%Y-%m-%dT%H:%M:%SZ", "%Y-%m-%dT%H:%M:%S"):
            try:
                return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
            except ValueError:
                continue
        # Offsets such as 2023-01-15T10:30:00-08:00
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            pass
        else:
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
        try:
            return _parse_timestamp(float(value))
        except ValueError:
            pass
    log.debug("Unparseable timestamp %r, treating as unknown", value)
    return None
