"""
claude_code.py — Adapter for coding-agent task lifecycle hooks.

Expected payload:

    {
      "hook_type": "task_start" | "task_complete" | "task_error" | "plan_created",
      "task_id":   "T-42",
      "task_name": "Refactor parser",
      "status":    "success" | "error" | "running",
      "duration":  12.5,              # optional, seconds
      "summary":   "...",             # optional
      "files_changed": ["a.py"],      # optional
      "tool_calls": 7,                # optional
      "workspace": "/repo",
      "timestamp": "2024-05-01T10:00:00Z"
    }

Mapping:

    status / hook_type                 event_type   severity
    ──────────────────                 ──────────   ────────
    status == error                    error        high
    task_complete + success            success      low
    anything else                      info         low

The task_id becomes the trace_id, so repeated hooks for the same task and
outcome are deduplicated.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from notihub.adapters.base import InputAdapter
from notihub.core.errors import ValidationError
from notihub.dispatch.models import Action, ActionType, Event, EventType, Severity

_REQUIRED = ("hook_type", "task_id", "task_name", "workspace")

_STATUS_MARKERS = {
    "success": "✅",
    "error": "❌",
    "running": "⏳",
}

_SEVERITY_BY_STATUS = {
    "error": Severity.HIGH,
    "success": Severity.LOW,
    "running": Severity.LOW,
}


class ClaudeCodeAdapter(InputAdapter):
    name = "claude-code"
    version = "1.0.0"

    def validate(self, raw: Any) -> bool:
        return isinstance(raw, Mapping) and all(raw.get(k) for k in _REQUIRED)

    def parse(self, raw: Any) -> Event:
        if not self.validate(raw):
            missing = [k for k in _REQUIRED if not isinstance(raw, Mapping) or not raw.get(k)]
            raise ValidationError(
                f"Invalid {self.name} payload, missing: {', '.join(missing)}",
                adapter=self.name,
                missing=missing,
            )

        status = str(raw.get("status", ""))
        return self.create_event(
            source=self.name,
            event_type=self._map_event_type(raw["hook_type"], status),
            severity=_SEVERITY_BY_STATUS.get(status, Severity.LOW),
            title=self._build_title(raw["task_name"], status),
            summary=self._build_summary(raw),
            context=self._build_context(raw),
            actions=[
                Action(
                    type=ActionType.LINK,
                    text="View task",
                    url=f"vscode://anthropic.claude-code?task={raw['task_id']}",
                )
            ],
            trace_id=str(raw["task_id"]),
            timestamp=raw.get("timestamp"),
        )

    @staticmethod
    def _map_event_type(hook_type: str, status: str) -> EventType:
        if status == "error":
            return EventType.ERROR
        if hook_type == "task_complete" and status == "success":
            return EventType.SUCCESS
        return EventType.INFO

    @staticmethod
    def _build_title(task_name: str, status: str) -> str:
        marker = _STATUS_MARKERS.get(status, "ℹ️")
        return f"{marker} Task {status or 'update'}: {task_name}"

    @staticmethod
    def _build_summary(raw: Mapping[str, Any]) -> str:
        if raw.get("summary"):
            return str(raw["summary"])

        parts: List[str] = []
        if raw.get("duration"):
            parts.append(f"Duration: {raw['duration']}s")
        if raw.get("files_changed"):
            parts.append(f"Files changed: {len(raw['files_changed'])}")
        if raw.get("tool_calls"):
            parts.append(f"Tool calls: {raw['tool_calls']}")
        return " | ".join(parts) or "Task completed"

    @staticmethod
    def _build_context(raw: Mapping[str, Any]) -> Dict[str, Any]:
        context = {
            "task_name": raw["task_name"],
            "workspace": raw["workspace"],
            "duration": raw.get("duration"),
            "files_changed": list(raw.get("files_changed") or []),
            "tool_calls": raw.get("tool_calls"),
        }
        return {k: v for k, v in context.items() if v is not None}
