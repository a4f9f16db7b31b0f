"""Shared fixtures for ws-debug tests."""

from datetime import datetime, timezone

import pytest

from wsdebug.registry import RoleRegistry
from wsdebug.relay import Relay
from wsdebug.transcript import TranscriptLogger

FIXED_TIME = datetime(2024, 5, 1, 12, 30, 45, 123456, tzinfo=timezone.utc)
FIXED_STAMP = "2024-05-01 12:30:45.123456 UTC"
SERVER_URL = "ws://example.test/socket"


@pytest.fixture
def registry() -> RoleRegistry:
    return RoleRegistry()


@pytest.fixture
def transcript(tmp_path) -> TranscriptLogger:
    return TranscriptLogger(str(tmp_path), clock=lambda: FIXED_TIME)


@pytest.fixture
def pretty_transcript(tmp_path) -> TranscriptLogger:
    return TranscriptLogger(str(tmp_path), pretty=True, clock=lambda: FIXED_TIME)


@pytest.fixture
def relay(registry, transcript) -> Relay:
    return Relay(registry, transcript, SERVER_URL)
