"""
Provision use case — bootstrap WordPress on this instance.

This is the top-level orchestrator: it reads instance metadata,
retrieves and validates the secret bundle, plans the recipe, executes
it step by step, and records the outcome.  The full vertical slice
from a fresh instance to a running site.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from wpbootstrap.adapters.registry import AdapterRegistry
from wpbootstrap.core.engine.executor import (
    ExecutionPlan,
    ExecutionReport,
    execute_plan,
    generate_operation_id,
    write_audit_entry,
)
from wpbootstrap.core.models.metadata import InstanceMetadata
from wpbootstrap.core.models.settings import Settings
from wpbootstrap.core.persistence.audit import AuditWriter
from wpbootstrap.core.persistence.state_file import ProvisionedMarker, load_marker, save_marker
from wpbootstrap.core.services.metadata import MetadataClient, MetadataError, read_instance_metadata
from wpbootstrap.core.services.recipe import build_plan, site_urls
from wpbootstrap.core.services.secrets import SecretError, retrieve_bundle

logger = logging.getLogger(__name__)


@dataclass
class ProvisionResult:
    """Result of a provisioning run."""

    operation_id: str = ""
    exit_code: int = 0
    error: str | None = None
    metadata: InstanceMetadata | None = None
    plan: ExecutionPlan | None = None
    report: ExecutionReport | None = None
    dry_run: bool = False
    mock: bool = False

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    def to_dict(self) -> dict:
        result: dict[str, Any] = {
            "operation_id": self.operation_id,
            "exit_code": self.exit_code,
            "dry_run": self.dry_run,
            "mock": self.mock,
        }
        if self.error:
            result["error"] = self.error
        if self.metadata:
            result["metadata"] = self.metadata.model_dump()
        if self.plan:
            result["actions_planned"] = self.plan.total_actions
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def default_registry(mock_mode: bool = False) -> AdapterRegistry:
    """Registry with every adapter the recipe uses."""
    from wpbootstrap.adapters.net.download import DownloadAdapter
    from wpbootstrap.adapters.shell.command import ShellCommandAdapter
    from wpbootstrap.adapters.shell.filesystem import FilesystemAdapter
    from wpbootstrap.adapters.shell.probe import ProbeAdapter

    shell = ShellCommandAdapter()
    registry = AdapterRegistry(mock_mode=mock_mode)
    registry.register(shell)
    registry.register(FilesystemAdapter())
    registry.register(ProbeAdapter(shell=shell))
    registry.register(DownloadAdapter())
    return registry


def run_provision(
    settings: Settings,
    dry_run: bool = False,
    mock_mode: bool = False,
    registry: AdapterRegistry | None = None,
    secrets_client: Any | None = None,
    metadata_client: MetadataClient | None = None,
) -> ProvisionResult:
    """Run the WordPress bootstrap.

    Args:
        settings: Recipe settings.
        dry_run: Fetch secrets and plan, but execute nothing.
        mock_mode: Treat every action as successful without executing it.
        registry: Optional pre-configured adapter registry.
        secrets_client: Optional Secrets Manager client (tests stub it).
        metadata_client: Optional IMDS reader (tests fake it).

    Returns:
        ProvisionResult; ``exit_code`` is what the process should exit with.
    """
    operation_id = generate_operation_id()
    result = ProvisionResult(operation_id=operation_id, dry_run=dry_run, mock=mock_mode)
    state_dir = Path(settings.state_dir)
    audit = AuditWriter(state_dir=state_dir)

    logger.info("===== WordPress Setup Started: %s =====", _timestamp())
    if not dry_run and not mock_mode and hasattr(os, "geteuid") and os.geteuid() != 0:
        logger.warning("Not running as root; file operations may fail")

    previous = load_marker(state_dir)
    if previous is not None:
        logger.warning(
            "This host was already provisioned by %s at %s; re-running is not idempotent",
            previous.operation_id,
            previous.completed_at,
        )

    # ── Instance metadata and secrets ────────────────────────────
    try:
        if metadata_client is None:
            metadata_client = MetadataClient(settings.metadata_url, settings.metadata_timeout)
        metadata = read_instance_metadata(metadata_client, region=settings.region)
        result.metadata = metadata
        if not any(site_urls(metadata)):
            raise MetadataError("Instance has neither a public hostname nor a public IPv4")

        bundle = retrieve_bundle(metadata.region, settings.secret_name, client=secrets_client)
    except MetadataError as e:
        return _abort(result, audit, str(e))
    except SecretError as e:
        for line in str(e).splitlines():
            logger.error("%s", line)
        if e.detail:
            logger.debug("Secret failure detail: %s", e.detail)
        return _abort(result, audit, str(e), logged=True)

    # ── Plan and execute ─────────────────────────────────────────
    plan = build_plan(settings, bundle, metadata, operation_id)
    result.plan = plan

    if registry is None:
        registry = default_registry(mock_mode=mock_mode)
    registry.set_redactions(bundle.sensitive_values())

    report = execute_plan(plan, registry, dry_run=dry_run)
    result.report = report
    result.exit_code = report.exit_code
    if report.failed_receipt is not None:
        result.error = report.failed_receipt.error

    _, site_url = site_urls(metadata)
    write_audit_entry(
        report,
        audit,
        context={"region": metadata.region, "site_url": site_url, "dry_run": dry_run, "mock": mock_mode},
    )

    if report.aborted:
        logger.error(
            "===== WordPress Setup Failed at step '%s' (exit %d): %s =====",
            report.failed_step,
            report.exit_code,
            _timestamp(),
        )
        return result

    if not dry_run and not mock_mode:
        save_marker(ProvisionedMarker(operation_id=operation_id, site_url=site_url), state_dir)

    logger.info("===== WordPress Setup Completed: %s =====", _timestamp())
    logger.info("Site: %s (blog at %s/%s)", site_url, site_url, settings.blog_subdir)
    return result


def _abort(
    result: ProvisionResult,
    audit: AuditWriter,
    error: str,
    logged: bool = False,
) -> ProvisionResult:
    """Stop before planning: exit 1, one audit entry."""
    if not logged:
        logger.error("%s", error)
    result.exit_code = 1
    result.error = error
    write_audit_entry(ExecutionReport(operation_id=result.operation_id), audit, error=error)
    return result


def _timestamp() -> str:
    return datetime.now().strftime("%a %b %d %H:%M:%S %Y")
