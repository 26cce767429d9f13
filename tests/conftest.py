"""Shared fixtures for transcriptnorm tests."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

import pytest

from transcriptnorm.config import Config
from transcriptnorm.models import RawCall, Segment, Sentence, User


@pytest.fixture
def sample_users() -> list[User]:
    return [
        User(
            id="S1",
            first_name="Lisa",
            last_name="Chen",
            email="lisa.chen@org.com",
            title="Account Executive",
            created=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
        User(
            id="S2",
            first_name="Rachel",
            last_name="Kim",
            email="rachel@acme.com",
            title="CISO",
            created=datetime(2024, 1, 1, tzinfo=timezone.utc),
        ),
    ]


@pytest.fixture
def sample_call() -> RawCall:
    return RawCall(
        call_id="call-1",
        segments=[
            Segment(
                speaker_id="S1",
                topic="Small Talk",
                sentences=[
                    Sentence(start_ms=0, end_ms=2000, text="Hello there."),
                    Sentence(start_ms=2000, end_ms=4000, text="How are you?"),
                ],
            ),
            Segment(
                speaker_id="S2",
                topic="Small Talk",
                sentences=[Sentence(start_ms=4000, end_ms=6000, text="I am well.")],
            ),
        ],
    )


@pytest.fixture
def calls_payload() -> dict:
    return {
        "callTranscripts": [
            {
                "callId": "call-1",
                "transcript": [
                    {
                        "speakerId": "S1",
                        "topic": "Small Talk",
                        "sentences": [
                            {"start": 0, "end": 2000, "text": "Hello there."},
                            {"start": 2000, "end": 4000, "text": "How are you?"},
                        ],
                    },
                    {
                        "speakerId": "S2",
                        "topic": "Pricing",
                        "sentences": [
                            {"start": 4000, "end": 6000, "text": "I am well."},
                        ],
                    },
                ],
            },
            {
                "callId": "call-2",
                "transcript": [
                    {
                        "speakerId": "S2",
                        "topic": "Compliance",
                        "sentences": [
                            {"start": 88000, "end": 91000, "text": "We need SOC 2."},
                        ],
                    },
                ],
            },
        ]
    }


@pytest.fixture
def users_payload() -> dict:
    return {
        "users": [
            {
                "id": "S1",
                "firstName": "Lisa",
                "lastName": "Chen",
                "emailAddress": "lisa.chen@org.com",
                "title": "Account Executive",
                "created": "2024-01-01T00:00:00Z",
                "active": True,
            },
            {
                "id": "S2",
                "firstName": "Rachel",
                "lastName": "Kim",
                "emailAddress": "rachel@acme.com",
                "title": "CISO",
                "created": "2024-01-01T00:00:00Z",
            },
        ]
    }


@pytest.fixture
def export_dir(tmp_path, calls_payload, users_payload) -> Path:
    d = tmp_path / "exports"
    d.mkdir()
    (d / "GONG_DATA.json").write_text(json.dumps(calls_payload))
    (d / "GONG_USERS.json").write_text(json.dumps(users_payload))
    return d


@pytest.fixture
def sample_config(export_dir, tmp_path) -> Config:
    return Config(
        calls_path=export_dir / "GONG_DATA.json",
        users_path=export_dir / "GONG_USERS.json",
        internal_domains=["org.com"],
        state_path=tmp_path / "state" / "run_state.json",
    )
