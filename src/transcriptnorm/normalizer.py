"""Flatten raw call transcripts into one speaker-attributed row per call.

Each call's segments are collapsed into timestamped lines, ordered by when the
segment started, and call-level metadata (duration, participants, emails,
topics, domains) is aggregated alongside. Calls are independent of each other;
the only shared input is the user directory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .models import (
    NormalizationResult,
    NormalizedCall,
    RawCall,
    RejectedCall,
    Segment,
    User,
)

log = logging.getLogger(__name__)

UNKNOWN_SPEAKER = "Unknown"

_LINE_SEPARATOR = "\n\n"
_SENTENCE_SPLIT = ". "


@dataclass
class _SegmentSummary:
    index: int
    speaker_id: str
    topic: str | None
    start_ms: int
    end_ms: int
    text: str


def format_timestamp(start_ms: int) -> str:
    """Format a millisecond offset as MM:SS. Minutes are not wrapped into hours."""
    total_seconds = start_ms // 1000
    minutes = total_seconds // 60
    seconds = total_seconds % 60
    return f"{minutes:02d}:{seconds:02d}"


def latest_profiles(users: Iterable[User]) -> dict[str, User]:
    """Pick the most recently created profile for each user id.

    Undated profiles lose to dated ones; on a tie the first one seen wins.
    """
    latest: dict[str, User] = {}
    for user in users:
        current = latest.get(user.id)
        if current is None or _is_newer(user, current):
            latest[user.id] = user
    return latest


def _is_newer(candidate: User, current: User) -> bool:
    if candidate.created is None:
        return False
    if current.created is None:
        return True
    return candidate.created > current.created


def display_name(user: User | None) -> str:
    if user is None:
        return UNKNOWN_SPEAKER
    parts = [p for p in (user.first_name, user.last_name) if p]
    return " ".join(parts) if parts else UNKNOWN_SPEAKER


def participant_label(user: User | None) -> str:
    name = display_name(user)
    if user is not None and user.title:
        return f"{name} ({user.title})"
    return name


def email_domain(email: str | None) -> str:
    if not email or "@" not in email:
        return ""
    return email.split("@", 1)[1].lower()


def _distinct(values: Iterable[str | None]) -> list[str]:
    """De-duplicate non-empty values, keeping first-appearance order."""
    seen: dict[str, None] = {}
    for value in values:
        if value:
            seen.setdefault(value, None)
    return list(seen)


def _summarize_segment(index: int, segment: Segment) -> _SegmentSummary | None:
    if not segment.sentences:
        return None
    ordered = sorted(segment.sentences, key=lambda s: s.start_ms)
    return _SegmentSummary(
        index=index,
        speaker_id=segment.speaker_id,
        topic=segment.topic,
        start_ms=ordered[0].start_ms,
        end_ms=max(s.end_ms for s in ordered),
        text=" ".join(s.text for s in ordered),
    )


def normalize_call(
    call: RawCall,
    profiles: dict[str, User],
    internal_domains: Iterable[str] = (),
) -> NormalizedCall | None:
    """Build the normalized row for one call, or None if it has no sentences."""
    summaries = [
        summary
        for index, segment in enumerate(call.segments)
        if (summary := _summarize_segment(index, segment)) is not None
    ]
    if not summaries:
        return None

    summaries.sort(key=lambda s: (s.start_ms, s.index))
    speakers = [profiles.get(s.speaker_id) for s in summaries]

    lines = [
        f"[{format_timestamp(s.start_ms)}] {display_name(user)}: {s.text}"
        for s, user in zip(summaries, speakers)
    ]

    start_ms = min(s.start_ms for s in summaries)
    end_ms = max(s.end_ms for s in summaries)

    excluded = {d.lower() for d in internal_domains}
    emails = _distinct(user.email if user else None for user in speakers)
    customer_emails = [e for e in emails if email_domain(e) not in excluded]

    return NormalizedCall(
        call_id=call.call_id,
        chronological_transcript=_LINE_SEPARATOR.join(lines),
        call_start_seconds=start_ms / 1000,
        call_end_seconds=end_ms / 1000,
        duration_minutes=round((end_ms - start_ms) / 1000 / 60, 2),
        speaker_count=len({s.speaker_id for s in summaries}),
        approx_sentence_count=sum(len(s.text.split(_SENTENCE_SPLIT)) for s in summaries),
        participants=", ".join(_distinct(participant_label(u) for u in speakers)),
        all_participant_emails="; ".join(emails),
        customer_emails="; ".join(customer_emails),
        topics_discussed=", ".join(_distinct(s.topic for s in summaries)),
        company_domains=", ".join(_distinct(email_domain(e) for e in emails)),
    )


def _merge_calls(calls: Iterable[RawCall]) -> dict[str, RawCall]:
    """Combine records sharing a call id, keeping segments in load order."""
    merged: dict[str, RawCall] = {}
    for call in calls:
        existing = merged.get(call.call_id)
        if existing is None:
            merged[call.call_id] = RawCall(call_id=call.call_id, segments=list(call.segments))
        else:
            log.debug("Merging duplicate record for call %s", call.call_id)
            existing.segments.extend(call.segments)
    return merged


def normalize_calls(
    calls: Iterable[RawCall],
    users: Iterable[User],
    internal_domains: Iterable[str] = (),
) -> NormalizationResult:
    """Normalize every call. Rows come back sorted by call id."""
    profiles = latest_profiles(users)
    internal_domains = list(internal_domains)
    result = NormalizationResult()

    for call_id, call in sorted(_merge_calls(calls).items()):
        row = normalize_call(call, profiles, internal_domains)
        if row is None:
            log.warning("Skipping call %s: no segments with sentences", call_id)
            result.rejected.append(RejectedCall(call_id=call_id, reason="no segments"))
            continue
        result.rows.append(row)

    log.debug(
        "Normalized %d calls (%d rejected, %d speaker profiles)",
        len(result.rows), len(result.rejected), len(profiles),
    )
    return result
