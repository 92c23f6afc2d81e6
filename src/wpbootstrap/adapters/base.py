"""
Adapter base — the protocol contract between engine and tools.

This defines the abstract interface that every adapter must implement.
The engine only talks to adapters through this protocol, never
directly to external tools.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, Field

from wpbootstrap.core.models.action import Action, Receipt

REDACTED = "******"


def redact_text(text: str, secrets: list[str]) -> str:
    """Mask every occurrence of the given secret values in ``text``."""
    for value in sorted(secrets, key=len, reverse=True):
        if value:
            text = text.replace(value, REDACTED)
    return text


class ExecutionContext(BaseModel):
    """Everything an adapter needs to execute an action.

    ``redact`` holds values that must never reach a log line or a
    receipt (passwords from the secret bundle).
    """

    action: Action
    dry_run: bool = False
    redact: list[str] = Field(default_factory=list)

    @property
    def params(self) -> dict[str, Any]:
        return self.action.params

    def mask(self, text: str) -> str:
        """Redact secret values from text bound for logs or receipts."""
        return redact_text(text, self.redact)


class Adapter(ABC):
    """Abstract base class for all adapters.

    Adapters perform external side effects and return receipts.
    They NEVER raise exceptions — failures are captured in the Receipt.

    To create a new adapter:
        1. Subclass Adapter
        2. Implement name, is_available, validate, execute
        3. Register it in the AdapterRegistry
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The adapter identifier (e.g., 'shell', 'filesystem', 'download')."""

    @abstractmethod
    def is_available(self) -> bool:
        """Check if this adapter's underlying tool is available.

        Should be fast and never raise.
        """

    @abstractmethod
    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        """Validate that the action can be executed.

        Returns:
            (is_valid, error_message). error_message is empty if valid.
        """

    @abstractmethod
    def execute(self, context: ExecutionContext) -> Receipt:
        """Execute the action and return a receipt.

        MUST never raise exceptions. All failures are captured
        in the Receipt with status='failed'.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
