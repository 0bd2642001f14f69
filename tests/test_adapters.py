"""
test_adapters.py — Tests for producer payload adapters.

Run with:
    pytest tests/test_adapters.py -v
"""

from __future__ import annotations

import re

import pytest

from notihub.adapters import ClaudeCodeAdapter, default_adapters
from notihub.core.errors import ValidationError
from notihub.dispatch.models import ActionType, EventType, Severity


def _make_payload(**overrides) -> dict:
    payload = {
        "hook_type": "task_complete",
        "task_id": "T-42",
        "task_name": "Refactor parser",
        "status": "success",
        "duration": 12.5,
        "files_changed": ["a.py", "b.py"],
        "tool_calls": 7,
        "workspace": "/repo",
        "timestamp": "2024-05-01T10:00:00Z",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def adapter() -> ClaudeCodeAdapter:
    return ClaudeCodeAdapter()


class TestValidate:

    def test_accepts_complete_payload(self, adapter):
        assert adapter.validate(_make_payload())

    @pytest.mark.parametrize("missing", ["hook_type", "task_id", "task_name", "workspace"])
    def test_rejects_missing_required(self, adapter, missing):
        payload = _make_payload()
        del payload[missing]
        assert not adapter.validate(payload)

    def test_rejects_non_mapping(self, adapter):
        assert not adapter.validate(["not", "a", "dict"])

    def test_parse_invalid_raises_with_missing_list(self, adapter):
        with pytest.raises(ValidationError) as exc:
            adapter.parse({"hook_type": "task_start"})
        assert exc.value.details["missing"] == ["task_id", "task_name", "workspace"]


class TestParse:

    def test_completed_success(self, adapter):
        event = adapter.parse(_make_payload())
        assert event.source == "claude-code"
        assert event.event_type is EventType.SUCCESS
        assert event.severity is Severity.LOW
        assert event.trace_id == "T-42"
        assert event.title.endswith("Task success: Refactor parser")
        assert event.summary == "Duration: 12.5s | Files changed: 2 | Tool calls: 7"

    def test_error_status(self, adapter):
        event = adapter.parse(_make_payload(hook_type="task_error", status="error"))
        assert event.event_type is EventType.ERROR
        assert event.severity is Severity.HIGH

    def test_start_is_info(self, adapter):
        event = adapter.parse(_make_payload(hook_type="task_start", status="running"))
        assert event.event_type is EventType.INFO
        assert event.severity is Severity.LOW

    def test_explicit_summary_wins(self, adapter):
        assert adapter.parse(_make_payload(summary="All green")).summary == "All green"

    def test_summary_fallback(self, adapter):
        payload = _make_payload(duration=None, files_changed=None, tool_calls=None)
        assert adapter.parse(payload).summary == "Task completed"

    def test_context_drops_missing_values(self, adapter):
        event = adapter.parse(_make_payload(duration=None, tool_calls=None))
        assert event.plain_context() == {
            "task_name": "Refactor parser",
            "workspace": "/repo",
            "files_changed": ["a.py", "b.py"],
        }

    def test_link_action(self, adapter):
        action = adapter.parse(_make_payload()).actions[0]
        assert action.type is ActionType.LINK
        assert action.url.endswith("task=T-42")

    def test_timestamp_parsed(self, adapter):
        event = adapter.parse(_make_payload())
        assert event.timestamp.isoformat() == "2024-05-01T10:00:00+00:00"


class TestAdapterHelpers:

    def test_generated_trace_id_shape(self, adapter):
        assert re.fullmatch(r"claude-code-\d{13}-[a-z0-9]{9}", adapter.generate_trace_id())

    def test_create_event_defaults(self, adapter):
        event = adapter.create_event(title="Hello")
        assert event.source == "claude-code"
        assert event.trace_id.startswith("claude-code-")

    def test_default_adapters_keyed_by_name(self):
        adapters = default_adapters()
        assert list(adapters) == ["claude-code"]
        assert isinstance(adapters["claude-code"], ClaudeCodeAdapter)
