"""Base class for producer adapters (raw payload → Event)."""

from __future__ import annotations

import random
import string
import time
from abc import ABC, abstractmethod
from typing import Any

from notihub.dispatch.models import Event


class InputAdapter(ABC):
    """Turns a producer's raw payload into a normalized Event.

    Concrete adapters are handed to the application as an explicit
    name → adapter mapping; there is no global registry.
    """

    name: str = "base"
    version: str = "1.0.0"

    @abstractmethod
    def validate(self, raw: Any) -> bool:
        """Cheap structural check before parse()."""

    @abstractmethod
    def parse(self, raw: Any) -> Event:
        ...

    def generate_trace_id(self) -> str:
        suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
        return f"{self.name}-{int(time.time() * 1000)}-{suffix}"

    def create_event(self, **fields: Any) -> Event:
        """Event.create with this adapter's defaults (source, trace_id)."""
        fields["source"] = fields.get("source") or self.name
        fields["trace_id"] = fields.get("trace_id") or self.generate_trace_id()
        return Event.create(**fields)
