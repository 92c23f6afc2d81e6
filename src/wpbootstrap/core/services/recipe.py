"""
WordPress recipe — the ordered provisioning steps as actions.

Metadata lookup and secret retrieval happen before planning (the plan
needs their values); everything from package installation onwards is
expressed here.  Each step depends on the side effects of the ones
before it, so the order below is the contract.

Steps:
    OS packages:    system_update, php, servers, web_root
    MariaDB:        database, database_verify, php_db_check
    Artifacts:      phpmyadmin, wordpress, wp_cli
    wp-cli:         wordpress_install, theme
    Finishing:      permissions, restart_services, site_url
"""

from __future__ import annotations

import logging
from typing import Any

from wpbootstrap.core.engine.executor import ExecutionPlan, Step
from wpbootstrap.core.models.action import Action
from wpbootstrap.core.models.metadata import InstanceMetadata
from wpbootstrap.core.models.secrets import SecretBundle
from wpbootstrap.core.models.settings import Settings
from wpbootstrap.core.services import database as db
from wpbootstrap.core.services.wpconfig import WP_CONFIG_TOKENS, wp_config_replacements

logger = logging.getLogger(__name__)


class _StepBuilder:
    """Collects actions for one step with ids ``<step>.<key>``."""

    def __init__(self, name: str, description: str, settings: Settings):
        self.step = Step(name=name, description=description)
        self._settings = settings

    def _add(self, key: str, label: str, adapter: str, params: dict[str, Any], fatal: bool) -> None:
        self.step.actions.append(Action(
            id=f"{self.step.name}.{key}",
            name=label,
            adapter=adapter,
            step=self.step.name,
            fatal=fatal,
            params=params,
        ))

    def run(
        self,
        key: str,
        label: str,
        command: list[str],
        *,
        fatal: bool = True,
        sudo: bool = True,
        **params: Any,
    ) -> None:
        params.setdefault("timeout", self._settings.command_timeout)
        self._add(key, label, "shell", {"command": command, "needs_sudo": sudo, **params}, fatal)

    def wp(self, key: str, label: str, args: list[str], *, path: str | None = None) -> None:
        """A wp-cli call as the web server user."""
        s = self._settings
        wp_path = path or s.wp_path
        self.run(
            key,
            label,
            [s.wp_cli_path, *args, f"--path={wp_path}"],
            sudo=False,
            run_as=s.web_user,
            cwd=wp_path,
        )

    def probe(self, key: str, label: str, command: list[str], *, until: str = "success") -> None:
        s = self._settings
        self._add(key, label, "probe", {
            "command": command,
            "needs_sudo": True,
            "until": until,
            "timeout": s.readiness_timeout,
            "interval": s.readiness_interval,
            "description": label,
        }, True)

    def fs(self, key: str, label: str, operation: str, **params: Any) -> None:
        self._add(key, label, "filesystem", {"operation": operation, **params}, True)

    def download(self, key: str, label: str, operation: str, **params: Any) -> None:
        params.setdefault("timeout", self._settings.download_timeout)
        self._add(key, label, "download", {"operation": operation, **params}, True)


def _fix_tree_permissions(b: _StepBuilder, key: str, root: str, owner: str) -> None:
    """chown the tree, setgid 2775 on directories, 0664 on files."""
    b.run(f"{key}-chown", f"chown -R {owner} {root}", ["chown", "-R", owner, root])
    b.run(f"{key}-chmod-root", f"chmod 2775 {root}", ["chmod", "2775", root])
    b.run(
        f"{key}-chmod-dirs",
        f"directories under {root} → 2775",
        ["find", root, "-type", "d", "-exec", "chmod", "2775", "{}", "+"],
    )
    b.run(
        f"{key}-chmod-files",
        f"files under {root} → 0664",
        ["find", root, "-type", "f", "-exec", "chmod", "0664", "{}", "+"],
    )


def site_urls(metadata: InstanceMetadata) -> tuple[str, str]:
    """(install URL, final site URL): hostname first, then public IP.

    Each falls back to the other when the instance lacks one of them.
    """
    by_host = metadata.hostname_url if metadata.public_hostname else ""
    by_ip = metadata.ip_url if metadata.public_ipv4 else ""
    return by_host or by_ip, by_ip or by_host


def build_plan(
    settings: Settings,
    bundle: SecretBundle,
    metadata: InstanceMetadata,
    operation_id: str = "",
) -> ExecutionPlan:
    """Build the full provisioning plan.

    Args:
        settings: Recipe constants.
        bundle: Validated secret bundle.
        metadata: Instance metadata (public hostname / IP for URLs).
        operation_id: Identifier of this run.

    Returns:
        ExecutionPlan with every step in execution order.
    """
    s = settings
    steps: list[Step] = []
    install_url, final_url = site_urls(metadata)
    root_pw = bundle.mysql_root_password.get_secret_value()

    # ── OS packages and services ────────────────────────────────
    b = _StepBuilder("system_update", "Update system packages", s)
    b.run("yum-update", "yum update", ["yum", "update", "-y"])
    steps.append(b.step)

    b = _StepBuilder("php", f"Install PHP ({s.php_topic}) and extensions", s)
    b.run("enable-topic", f"enable {s.php_topic}", ["amazon-linux-extras", "enable", s.php_topic, "-y"])
    b.run("clean-metadata", "yum clean metadata", ["yum", "clean", "metadata"])
    b.run("install", "install PHP packages", ["yum", "install", "-y", *s.php_packages])
    steps.append(b.step)

    b = _StepBuilder("servers", "Install Apache and MariaDB", s)
    b.run("install", "install server packages", ["yum", "install", "-y", *s.server_packages])
    for service in (s.web_service, s.db_service):
        b.run(f"enable-{service}", f"enable {service}", ["systemctl", "enable", service])
        b.run(f"start-{service}", f"start {service}", ["systemctl", "start", service])
    steps.append(b.step)

    b = _StepBuilder("web_root", f"Prepare {s.web_root} for {s.deploy_user}", s)
    b.run("mkdir", f"mkdir -p {s.web_root}", ["mkdir", "-p", s.web_root])
    b.run(
        "usermod",
        f"add {s.deploy_user} to {s.web_group}",
        ["usermod", "-a", "-G", s.web_group, s.deploy_user],
    )
    _fix_tree_permissions(b, "perms", s.web_root, f"{s.deploy_user}:{s.web_group}")
    steps.append(b.step)

    # ── Database bootstrap ──────────────────────────────────────
    b = _StepBuilder("database", "Configure MariaDB root password, database and user", s)
    b.probe("wait-up", f"{s.db_service} accepting connections", db.ping_command())
    b.run("stop", f"stop {s.db_service}", ["systemctl", "stop", s.db_service])
    b.probe("wait-stopped", f"{s.db_service} stopped", db.ping_command(), until="failure")
    b.run(
        "safe-mode",
        "start mysqld_safe without grant tables",
        ["mysqld_safe", "--skip-grant-tables", "--skip-networking"],
        background=True,
    )
    b.probe("wait-safe-mode", "mysqld_safe accepting connections", db.ping_command())
    b.run("bootstrap-sql", "set root password, create database and user",
          ["mysql", "-u", "root"], input=db.bootstrap_sql(bundle))
    b.run("shutdown", "shut down mysqld_safe", db.shutdown_command(root_pw))
    b.probe("wait-shutdown", "mysqld_safe stopped", db.ping_command(), until="failure")
    b.run("start", f"start {s.db_service}", ["systemctl", "start", s.db_service])
    b.probe("wait-restart", f"{s.db_service} accepting connections", db.ping_command())
    steps.append(b.step)

    b = _StepBuilder("database_verify", "Verify MariaDB root credentials", s)
    b.run("reject-old", "passwordless root login rejected",
          db.root_login_command(), expect_failure=True)
    b.run("accept-new", "root login with new password", db.root_login_command(root_pw))
    steps.append(b.step)

    b = _StepBuilder("php_db_check", "Test DB connection from PHP", s)
    b.run("connect", "PHP mysqli_connect as application user",
          db.php_connect_check(bundle), fatal=False, sudo=False)
    steps.append(b.step)

    # ── Artifacts ───────────────────────────────────────────────
    b = _StepBuilder("phpmyadmin", "Install phpMyAdmin", s)
    b.download("extract", "download and extract phpMyAdmin", "archive",
               url=s.downloads.phpmyadmin, dest=s.phpmyadmin_path, strip_components=1)
    steps.append(b.step)

    staging = f"{s.staging_dir}/wordpress"
    b = _StepBuilder("wordpress", "Install WordPress", s)
    b.fs("clean-staging", "clear staging directory", "remove", path=staging)
    b.download("extract", "download and extract WordPress", "archive",
               url=s.downloads.wordpress, dest=staging, strip_components=1)
    b.fs(
        "wp-config",
        "render wp-config.php",
        "substitute",
        source=f"{staging}/wp-config-sample.php",
        path=f"{staging}/wp-config.php",
        replacements=wp_config_replacements(bundle),
        required=list(WP_CONFIG_TOKENS),
    )
    b.fs("copy-root", f"copy WordPress to {s.wp_path}", "copy_tree", source=staging, path=s.wp_path)
    b.fs("mkdir-blog", f"mkdir {s.blog_path}", "mkdir", path=s.blog_path)
    b.fs("copy-blog", f"copy WordPress to {s.blog_path}", "copy_tree", source=staging, path=s.blog_path)
    b.fs("remove-staging", "remove staging directory", "remove", path=staging)
    steps.append(b.step)

    b = _StepBuilder("wp_cli", "Install wp-cli", s)
    b.download("fetch", f"download wp-cli to {s.wp_cli_path}", "fetch",
               url=s.downloads.wp_cli, dest=s.wp_cli_path, mode=0o755)
    steps.append(b.step)

    # ── WordPress finalization ──────────────────────────────────
    b = _StepBuilder("wordpress_install", "Complete WordPress install", s)
    b.wp("core-install", "wp core install", [
        "core", "install",
        f"--url={install_url}",
        f"--title={s.site_title}",
        f"--admin_user={bundle.admin_user}",
        f"--admin_password={bundle.admin_password.get_secret_value()}",
        f"--admin_email={bundle.admin_email}",
        "--skip-email",
    ])
    steps.append(b.step)

    b = _StepBuilder("theme", f"Install and activate '{s.theme}' theme", s)
    b.download("extract", f"download {s.theme}", "archive",
               url=s.downloads.theme, dest=s.theme_path, strip_components=1)
    b.run("chown", f"chown -R {s.web_owner} {s.theme_path}", ["chown", "-R", s.web_owner, s.theme_path])
    b.wp("activate", f"wp theme activate {s.theme}", ["theme", "activate", s.theme])
    steps.append(b.step)

    # ── Ownership, restarts, URLs ───────────────────────────────
    b = _StepBuilder("permissions", "Fix ownership and permissions", s)
    b.run("themes-chown", f"chown -R {s.web_owner} {s.themes_dir}", ["chown", "-R", s.web_owner, s.themes_dir])
    b.run("themes-chmod", f"chmod -R 755 {s.themes_dir}", ["chmod", "-R", "755", s.themes_dir])
    _fix_tree_permissions(b, "web-root", s.web_root, s.web_owner)
    steps.append(b.step)

    b = _StepBuilder("restart_services", "Restart services", s)
    for service in (s.web_service, s.db_service):
        b.run(f"restart-{service}", f"restart {service}", ["systemctl", "restart", service])
    b.probe("wait-db", f"{s.db_service} accepting connections", db.ping_command())
    steps.append(b.step)

    b = _StepBuilder("site_url", f"Point site URL at {final_url}", s)
    b.wp("siteurl", "wp option update siteurl", ["option", "update", "siteurl", final_url])
    b.wp("home", "wp option update home", ["option", "update", "home", final_url])
    b.wp("activate-theme", f"wp theme activate {s.theme}", ["theme", "activate", s.theme])
    steps.append(b.step)

    plan = ExecutionPlan(operation_id=operation_id, steps=steps)
    logger.debug("Planned %d steps, %d actions", len(plan.steps), plan.total_actions)
    return plan
