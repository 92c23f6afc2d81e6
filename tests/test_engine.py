"""
Tests for engine executor — fail-fast execution, exit codes, and audit.
"""

import re
from pathlib import Path

from wpbootstrap.adapters.mock import MockAdapter
from wpbootstrap.adapters.registry import AdapterRegistry
from wpbootstrap.core.engine.executor import (
    ExecutionPlan,
    Step,
    execute_plan,
    generate_operation_id,
    write_audit_entry,
)
from wpbootstrap.core.models.action import Action
from wpbootstrap.core.persistence.audit import AuditWriter


def _plan() -> ExecutionPlan:
    def action(step: str, key: str, fatal: bool = True) -> Action:
        return Action(id=f"{step}.{key}", name=key, adapter="shell", step=step, fatal=fatal)

    return ExecutionPlan(
        operation_id="op-test",
        steps=[
            Step("packages", "Install packages", [action("packages", "yum"), action("packages", "extras")]),
            Step("database", "Configure database", [action("database", "sql"), action("database", "check", fatal=False)]),
            Step("wordpress", "Install WordPress", [action("wordpress", "extract")]),
        ],
    )


def _registry() -> tuple[AdapterRegistry, MockAdapter]:
    mock = MockAdapter()
    registry = AdapterRegistry()
    registry.set_mock_mode(True, mock)
    return registry, mock


class TestExecutionPlan:
    def test_actions_flattened_in_order(self):
        plan = _plan()
        assert plan.total_actions == 5
        assert [a.id for a in plan.actions][:3] == ["packages.yum", "packages.extras", "database.sql"]

    def test_get_step(self):
        plan = _plan()
        assert plan.get_step("database").description == "Configure database"
        assert plan.get_step("nope") is None

    def test_to_dict(self):
        data = _plan().to_dict()
        assert data["operation_id"] == "op-test"
        assert [s["name"] for s in data["steps"]] == ["packages", "database", "wordpress"]
        assert data["steps"][1]["actions"][1]["fatal"] is False


class TestExecutePlan:
    def test_all_succeed(self):
        registry, mock = _registry()
        report = execute_plan(_plan(), registry)
        assert report.status == "ok"
        assert report.exit_code == 0
        assert report.total == 5
        assert report.steps_completed == ["packages", "database", "wordpress"]
        assert mock.call_count == 5

    def test_fatal_failure_stops_run(self):
        registry, mock = _registry()
        mock.set_failure("database.sql", error="ERROR 1045", return_code=7)

        report = execute_plan(_plan(), registry)

        assert report.aborted
        assert report.status == "partial"
        assert report.exit_code == 7
        assert report.failed_step == "database"
        assert report.failed_receipt.action_id == "database.sql"
        assert report.steps_completed == ["packages"]
        assert mock.executed_ids == ["packages.yum", "packages.extras", "database.sql"]

    def test_killed_by_signal_exits_like_a_shell(self):
        registry, mock = _registry()
        mock.set_failure("database.sql", error="Killed", return_code=-9)
        report = execute_plan(_plan(), registry)
        assert report.exit_code == 137

    def test_failure_without_exit_status_exits_one(self):
        registry, mock = _registry()
        mock.set_failure("packages.yum", error="Download failed")
        report = execute_plan(_plan(), registry)
        assert report.exit_code == 1
        assert report.status == "failed"

    def test_non_fatal_failure_continues(self):
        registry, mock = _registry()
        mock.set_failure("database.check", error="PHP: DB connection failed", return_code=1)

        report = execute_plan(_plan(), registry)

        assert not report.aborted
        assert report.exit_code == 0
        assert report.failed == 1
        assert "wordpress" in report.steps_completed
        assert mock.executed_ids[-1] == "wordpress.extract"

    def test_dry_run_executes_nothing(self):
        registry, mock = _registry()
        report = execute_plan(_plan(), registry, dry_run=True)
        assert mock.call_count == 0
        assert report.skipped == 5
        assert report.exit_code == 0

    def test_step_receipts(self):
        registry, _ = _registry()
        report = execute_plan(_plan(), registry)
        assert len(report.step_receipts["packages"]) == 2
        assert len(report.step_receipts["wordpress"]) == 1

    def test_report_to_dict(self):
        registry, mock = _registry()
        mock.set_failure("wordpress.extract", error="boom", return_code=2)
        data = execute_plan(_plan(), registry).to_dict()
        assert data["status"] == "partial"
        assert data["exit_code"] == 2
        assert data["failed_step"] == "wordpress"
        assert len(data["receipts"]) == 5


class TestAudit:
    def test_write_audit_entry(self, tmp_path: Path):
        registry, mock = _registry()
        mock.set_failure("database.sql", error="ERROR 1045", return_code=1)
        report = execute_plan(_plan(), registry)

        writer = AuditWriter(state_dir=tmp_path)
        write_audit_entry(report, writer, context={"region": "us-west-2"})

        (entry,) = writer.read_all()
        assert entry.operation_id == "op-test"
        assert entry.operation_type == "provision"
        assert entry.status == "partial"
        assert entry.failed_step == "database"
        assert entry.errors == ["ERROR 1045"]
        assert entry.context["region"] == "us-west-2"

    def test_error_before_execution(self, tmp_path: Path):
        from wpbootstrap.core.engine.executor import ExecutionReport

        writer = AuditWriter(state_dir=tmp_path)
        write_audit_entry(ExecutionReport(operation_id="op-x"), writer, error="no secret")
        (entry,) = writer.read_all()
        assert entry.status == "failed"
        assert entry.exit_code == 1
        assert entry.errors == ["no secret"]


class TestOperationId:
    def test_format(self):
        assert re.fullmatch(r"op-\d{8}-\d{6}-[0-9a-f]{6}", generate_operation_id())

    def test_unique(self):
        assert generate_operation_id() != generate_operation_id()
