"""Data models for call transcript exports and normalized calls."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Sentence:
    start_ms: int
    end_ms: int
    text: str


@dataclass
class Segment:
    """A block of sentences attributed to one speaker and one topic."""

    speaker_id: str
    topic: str | None = None
    sentences: list[Sentence] = field(default_factory=list)


@dataclass
class RawCall:
    call_id: str
    segments: list[Segment] = field(default_factory=list)


@dataclass
class User:
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    title: str | None = None
    created: datetime | None = None


@dataclass
class NormalizedCall:
    """One denormalized row per call, as published to the output table."""

    call_id: str
    chronological_transcript: str
    call_start_seconds: float
    call_end_seconds: float
    duration_minutes: float
    speaker_count: int
    approx_sentence_count: int
    participants: str = ""
    all_participant_emails: str = ""
    customer_emails: str = ""
    topics_discussed: str = ""
    company_domains: str = ""


@dataclass
class RejectedCall:
    call_id: str
    reason: str


@dataclass
class NormalizationResult:
    rows: list[NormalizedCall] = field(default_factory=list)
    rejected: list[RejectedCall] = field(default_factory=list)
