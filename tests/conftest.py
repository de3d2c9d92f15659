"""
Shared fixtures.

No test talks to Google Sheets or the AI gateway: storage is in-memory
and the gateway is a scripted fake.
"""

import copy
from typing import Optional

import pytest

from finbuddy.audit import AuditLogger
from finbuddy.services.realtime import ChangeFeed
from finbuddy.services.storage import InMemoryAuditStorage, InMemoryRecordStorage

USER_ID = "user-1"
OTHER_USER_ID = "user-2"


class FakeGateway:
    """Stands in for LLMGateway. Returns canned answers and records calls."""

    def __init__(
        self,
        response: Optional[dict] = None,
        error: Optional[Exception] = None,
        text: str = "Hello from FinBuddy",
        stream_lines: Optional[list[str]] = None,
    ):
        self.response = response or {}
        self.error = error
        self.text = text
        self.stream_lines = stream_lines or [
            'data: {"choices":[{"delta":{"content":"Hi"}}]}\n\n',
            "data: [DONE]\n\n",
        ]
        self.calls: list[dict] = []

    async def complete_json(self, system: str, user: str, tool: Optional[dict] = None) -> dict:
        self.calls.append({"system": system, "user": user, "tool": tool})
        if self.error:
            raise self.error
        return copy.deepcopy(self.response)

    async def complete_text(self, system: str, messages: list[dict]) -> str:
        self.calls.append({"system": system, "messages": messages})
        if self.error:
            raise self.error
        return self.text

    def stream_chat(self, system: str, messages: list[dict]):
        self.calls.append({"system": system, "messages": messages})
        if self.error:
            raise self.error
        return iter(self.stream_lines)


@pytest.fixture
def feed():
    return ChangeFeed()


@pytest.fixture
def storage(feed):
    return InMemoryRecordStorage(feed)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)
