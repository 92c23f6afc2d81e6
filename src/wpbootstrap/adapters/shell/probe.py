"""
Probe adapter — readiness polling as a provisioning action.

Repeats a command through the shell adapter until it succeeds (a
service came up) or fails (a service went down), bounded by a timeout.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from wpbootstrap.adapters.base import Adapter, ExecutionContext
from wpbootstrap.adapters.shell.command import ShellCommandAdapter
from wpbootstrap.core.models.action import Action, Receipt
from wpbootstrap.core.services.readiness import wait_for_ready

logger = logging.getLogger(__name__)

_VALID_UNTIL = {"success", "failure"}


class ProbeAdapter(Adapter):
    """Poll a command until it reaches the wanted outcome.

    Action params:
        command (list[str]): Probe command (e.g. ``mysqladmin ping``).
        needs_sudo (bool): Passed through to the shell adapter.
        until (str): 'success' (default) or 'failure'.
        timeout (float): Give up after this many seconds (default: 60).
        interval (float): Seconds between attempts (default: 1).
        description (str): What we are waiting for, for messages.
    """

    def __init__(
        self,
        shell: ShellCommandAdapter | None = None,
        sleep: Callable[[float], None] | None = None,
    ):
        self._shell = shell or ShellCommandAdapter()
        self._sleep = sleep

    @property
    def name(self) -> str:
        return "probe"

    def is_available(self) -> bool:
        return self._shell.is_available()

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        if not context.params.get("command"):
            return False, "Missing required param: 'command'"
        until = context.params.get("until", "success")
        if until not in _VALID_UNTIL:
            return False, f"Unknown 'until' value '{until}'. Valid: failure, success"
        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        want_success = params.get("until", "success") == "success"
        timeout = float(params.get("timeout", 60.0))
        interval = float(params.get("interval", 1.0))
        description = params.get("description") or context.action.name or context.action.id

        probe_ctx = ExecutionContext(
            action=Action(
                id=f"{context.action.id}:poll",
                adapter=self._shell.name,
                params={
                    "command": params["command"],
                    "needs_sudo": params.get("needs_sudo", False),
                    "timeout": max(int(interval * 5), 5),
                },
            ),
            redact=context.redact,
        )

        extra = {"sleep": self._sleep} if self._sleep else {}
        try:
            receipt, attempts = wait_for_ready(
                lambda: self._shell.execute(probe_ctx),
                lambda r: r.ok == want_success,
                timeout=timeout,
                interval=interval,
                description=description,
                **extra,
            )
        except TimeoutError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=str(e),
                metadata={"timeout": timeout, "until": params.get("until", "success")},
            )

        state = "up" if want_success else "down"
        logger.info("%s is %s (attempt %d)", description, state, attempts)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"{description} is {state} after {attempts} attempt(s)",
            metadata={"attempts": attempts, "last_output": receipt.output},
        )
