"""
Shell command adapter — run host commands and capture their output.

This is the SINGLE PLACE where provisioning commands reach
``subprocess``.  Every package install, service change, database
statement and wp-cli call goes through here, so privilege handling,
timeouts and secret redaction are centralised.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import time
from pathlib import Path
from typing import Any

from wpbootstrap.adapters.base import Adapter, ExecutionContext
from wpbootstrap.core.models.action import Receipt

logger = logging.getLogger(__name__)

# Tail of stdout/stderr kept on receipts
_OUTPUT_TAIL = 2000


def build_command(
    command: list[str],
    *,
    needs_sudo: bool = False,
    run_as: str | None = None,
) -> list[str]:
    """Apply privilege prefixes to a command.

    ``run_as`` always goes through ``sudo -u`` (even as root) so files
    are created with the target identity.  ``needs_sudo`` only adds
    ``sudo -n`` when we are not already root.
    """
    cmd = list(command)
    if run_as:
        cmd = ["sudo", "-u", run_as] + cmd
    elif needs_sudo and os.geteuid() != 0:
        cmd = ["sudo", "-n"] + cmd
    return cmd


class ShellCommandAdapter(Adapter):
    """Execute commands and capture output.

    Action params:
        command (list[str]): argv of the command to run.
        needs_sudo (bool): Prefix ``sudo -n`` unless already root.
        run_as (str): Run as this user via ``sudo -u``.
        input (str): Data piped to stdin (e.g. SQL for ``mysql``).
        cwd (str): Working directory.
        timeout (int): Timeout in seconds (default: 600).
        background (bool): Start the process and return immediately.
        expect_failure (bool): Succeed only if the command exits non-zero.
    """

    @property
    def name(self) -> str:
        return "shell"

    def is_available(self) -> bool:
        return shutil.which("sh") is not None

    def validate(self, context: ExecutionContext) -> tuple[bool, str]:
        command = context.params.get("command")
        if not command:
            return False, "Missing required param: 'command'"
        if not isinstance(command, list) or not all(isinstance(c, str) for c in command):
            return False, "Param 'command' must be a list of strings"

        cwd = context.params.get("cwd")
        if cwd and not context.dry_run and not Path(cwd).is_dir():
            return False, f"Working directory does not exist: {cwd}"

        return True, ""

    def execute(self, context: ExecutionContext) -> Receipt:
        params = context.params
        cmd = build_command(
            params["command"],
            needs_sudo=params.get("needs_sudo", False),
            run_as=params.get("run_as"),
        )
        display = shlex.join(context.mask(arg) for arg in cmd)
        timeout = params.get("timeout", 600)
        cwd = params.get("cwd")

        logger.debug("Executing: %s (cwd=%s)", display, cwd)

        if params.get("background"):
            return self._spawn(context, cmd, display, cwd=cwd)

        start = time.monotonic()
        try:
            result = subprocess.run(
                cmd,
                input=params.get("input"),
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command timed out after {timeout}s",
                metadata={"command": display, "timeout": timeout},
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {cmd[0]}",
                metadata={"command": display, "return_code": 127},
            )
        except Exception as e:
            logger.exception("Subprocess error: %s", display)
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=context.mask(f"Command execution error: {e}"),
                metadata={"command": display},
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        stdout = context.mask(result.stdout.strip()[-_OUTPUT_TAIL:]) if result.stdout else ""
        stderr = context.mask(result.stderr.strip()[-_OUTPUT_TAIL:]) if result.stderr else ""
        metadata: dict[str, Any] = {
            "command": display,
            "return_code": result.returncode,
            "stderr": stderr,
        }

        if params.get("expect_failure"):
            return self._expect_failure(context, result.returncode, stdout, metadata, elapsed_ms)

        if result.returncode == 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=stdout,
                duration_ms=elapsed_ms,
                metadata=metadata,
            )

        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error=stderr or f"Command exited with code {result.returncode}",
            output=stdout,
            duration_ms=elapsed_ms,
            metadata=metadata,
        )

    def _expect_failure(
        self,
        context: ExecutionContext,
        returncode: int,
        stdout: str,
        metadata: dict[str, Any],
        elapsed_ms: int,
    ) -> Receipt:
        """Invert the outcome: a non-zero exit is what we wanted."""
        if returncode != 0:
            return Receipt.success(
                adapter=self.name,
                action_id=context.action.id,
                output=f"Rejected as expected (exit {returncode})",
                duration_ms=elapsed_ms,
                metadata=metadata,
            )
        # Exit 0 here is a failure; keep it from reading as success upstream
        metadata["return_code"] = None
        return Receipt.failure(
            adapter=self.name,
            action_id=context.action.id,
            error="Command succeeded but was expected to fail",
            output=stdout,
            duration_ms=elapsed_ms,
            metadata=metadata,
        )

    def _spawn(
        self,
        context: ExecutionContext,
        cmd: list[str],
        display: str,
        *,
        cwd: str | None,
    ) -> Receipt:
        """Start a long-running process detached from our pipes."""
        try:
            proc = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                cwd=cwd,
                start_new_session=True,
            )
        except FileNotFoundError:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=f"Command not found: {cmd[0]}",
                metadata={"command": display, "return_code": 127},
            )
        except OSError as e:
            return Receipt.failure(
                adapter=self.name,
                action_id=context.action.id,
                error=context.mask(f"Could not start process: {e}"),
                metadata={"command": display},
            )

        logger.info("Started background process %d: %s", proc.pid, display)
        return Receipt.success(
            adapter=self.name,
            action_id=context.action.id,
            output=f"Started pid {proc.pid}",
            metadata={"command": display, "pid": proc.pid, "background": True},
        )
