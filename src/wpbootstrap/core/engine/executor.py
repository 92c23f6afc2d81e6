"""
Engine executor — the ordered, fail-fast step runner.

The engine takes a plan (ordered steps, each an ordered list of
actions), dispatches every action through the adapter registry and
collects receipts.  The first failed fatal action stops the run:
nothing after it executes, nothing before it is undone.

Flow:
    plan → for each step → for each action → execute → receipt → stop on fatal failure
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from wpbootstrap.adapters.registry import AdapterRegistry
from wpbootstrap.core.models.action import Action, Receipt
from wpbootstrap.core.persistence.audit import AuditEntry, AuditWriter

logger = logging.getLogger(__name__)


@dataclass
class Step:
    """One provisioning step: a named, ordered group of actions."""

    name: str
    description: str = ""
    actions: list[Action] = field(default_factory=list)


@dataclass
class ExecutionPlan:
    """The ordered steps to execute."""

    operation_id: str = ""
    steps: list[Step] = field(default_factory=list)

    @property
    def actions(self) -> list[Action]:
        return [a for s in self.steps for a in s.actions]

    @property
    def total_actions(self) -> int:
        return len(self.actions)

    def get_step(self, name: str) -> Step | None:
        """Look up a step by name."""
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "steps": [
                {
                    "name": s.name,
                    "description": s.description,
                    "actions": [
                        {"id": a.id, "name": a.name, "adapter": a.adapter, "fatal": a.fatal}
                        for a in s.actions
                    ],
                }
                for s in self.steps
            ],
        }


@dataclass
class ExecutionReport:
    """Result of executing a plan."""

    operation_id: str = ""
    receipts: list[Receipt] = field(default_factory=list)
    step_receipts: dict[str, list[Receipt]] = field(default_factory=dict)
    steps_completed: list[str] = field(default_factory=list)
    failed_step: str | None = None
    failed_receipt: Receipt | None = None

    @property
    def total(self) -> int:
        return len(self.receipts)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.receipts if r.ok)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.receipts if r.failed)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.receipts if r.status == "skipped")

    @property
    def aborted(self) -> bool:
        """Whether a fatal failure stopped the run."""
        return self.failed_receipt is not None

    @property
    def status(self) -> str:
        if not self.aborted:
            return "ok"
        if self.succeeded > 0:
            return "partial"
        return "failed"

    @property
    def exit_code(self) -> int:
        """0 on success, else the failing command's exit status (1 if it had none).

        A command killed by signal N reports -N; that maps to 128 + N as
        a shell would.
        """
        if self.failed_receipt is None:
            return 0
        code = self.failed_receipt.return_code
        if not code:
            return 1
        return 128 - code if code < 0 else code

    def to_dict(self) -> dict:
        return {
            "operation_id": self.operation_id,
            "status": self.status,
            "exit_code": self.exit_code,
            "total": self.total,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "steps_completed": self.steps_completed,
            "failed_step": self.failed_step,
            "receipts": [r.model_dump(mode="json") for r in self.receipts],
        }


def execute_plan(
    plan: ExecutionPlan,
    registry: AdapterRegistry,
    dry_run: bool = False,
) -> ExecutionReport:
    """Execute all steps of a plan in order, stopping at the first fatal failure.

    Args:
        plan: The execution plan.
        registry: Adapter registry for dispatch.
        dry_run: If True, validate but don't execute.

    Returns:
        ExecutionReport with all receipts gathered so far.
    """
    report = ExecutionReport(operation_id=plan.operation_id)
    total_steps = len(plan.steps)

    for index, step in enumerate(plan.steps, start=1):
        logger.info("── [%d/%d] %s", index, total_steps, step.description or step.name)

        for action in step.actions:
            receipt = registry.execute_action(action, dry_run=dry_run)
            report.receipts.append(receipt)
            report.step_receipts.setdefault(step.name, []).append(receipt)
            _log_receipt(action, receipt)

            if receipt.failed and action.fatal:
                report.failed_step = step.name
                report.failed_receipt = receipt
                logger.error(
                    "Step '%s' failed at %s: %s",
                    step.name,
                    action.name or action.id,
                    receipt.error,
                )
                return report

        report.steps_completed.append(step.name)

    return report


def _log_receipt(action: Action, receipt: Receipt) -> None:
    label = action.name or action.id
    timing = f" ({receipt.duration_ms}ms)" if receipt.duration_ms else ""

    if receipt.ok:
        logger.info("  ✓ %s%s", label, timing)
        if receipt.output:
            logger.debug("    %s", receipt.output)
    elif receipt.failed:
        level = logging.ERROR if action.fatal else logging.WARNING
        logger.log(level, "  ✗ %s%s", label, timing)
        if receipt.output:
            logger.log(level, "    stdout: %s", receipt.output)
        if receipt.error:
            logger.log(level, "    error: %s", receipt.error)
    else:
        logger.info("  ⊘ %s (%s)", label, receipt.output)


def write_audit_entry(
    report: ExecutionReport,
    audit_writer: AuditWriter,
    *,
    error: str | None = None,
    context: dict | None = None,
) -> None:
    """Write the outcome of a run to the audit ledger."""
    errors = []
    if report.failed_receipt is not None and report.failed_receipt.error:
        errors.append(report.failed_receipt.error)
    if error:
        errors.append(error)

    entry = AuditEntry(
        operation_id=report.operation_id,
        operation_type="provision",
        status=report.status if not error else "failed",
        exit_code=report.exit_code if not error else 1,
        actions_total=report.total,
        actions_succeeded=report.succeeded,
        actions_failed=report.failed,
        steps_completed=report.steps_completed,
        failed_step=report.failed_step,
        errors=errors,
        context=context or {},
    )
    audit_writer.write(entry)


def generate_operation_id() -> str:
    """Generate a unique operation ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"op-{now}-{short}"
