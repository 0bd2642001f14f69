"""
adapters — Producer-facing adapters.

Each adapter validates a raw payload and builds a normalized Event; the
application receives them as an explicit name → adapter mapping.
"""

from notihub.adapters.base import InputAdapter
from notihub.adapters.claude_code import ClaudeCodeAdapter

__all__ = ["InputAdapter", "ClaudeCodeAdapter", "default_adapters"]


def default_adapters() -> dict:
    """Adapters exposed under /webhooks/{name}."""
    adapter = ClaudeCodeAdapter()
    return {adapter.name: adapter}
