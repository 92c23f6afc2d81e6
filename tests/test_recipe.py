"""
Tests for the WordPress recipe — step order and the actions each step plans.
"""

import pytest

from wpbootstrap.core.models.metadata import InstanceMetadata
from wpbootstrap.core.models.settings import Settings
from wpbootstrap.core.services.recipe import build_plan, site_urls
from wpbootstrap.core.services.wpconfig import WP_CONFIG_TOKENS

STEP_ORDER = [
    "system_update",
    "php",
    "servers",
    "web_root",
    "database",
    "database_verify",
    "php_db_check",
    "phpmyadmin",
    "wordpress",
    "wp_cli",
    "wordpress_install",
    "theme",
    "permissions",
    "restart_services",
    "site_url",
]


@pytest.fixture
def plan(bundle, metadata):
    return build_plan(Settings(), bundle, metadata, "op-1")


def _action(plan, action_id):
    return next(a for a in plan.actions if a.id == action_id)


class TestPlanShape:
    def test_step_order(self, plan):
        assert [s.name for s in plan.steps] == STEP_ORDER

    def test_action_ids_unique_and_scoped(self, plan):
        ids = [a.id for a in plan.actions]
        assert len(ids) == len(set(ids))
        for step in plan.steps:
            assert all(a.id.startswith(step.name + ".") and a.step == step.name for a in step.actions)

    def test_only_php_check_is_non_fatal(self, plan):
        non_fatal = [a.id for a in plan.actions if not a.fatal]
        assert non_fatal == ["php_db_check.connect"]

    def test_operation_id(self, plan):
        assert plan.operation_id == "op-1"


class TestPackages:
    def test_php_install(self, plan):
        cmds = [a.params["command"] for a in plan.get_step("php").actions]
        assert cmds[0] == ["amazon-linux-extras", "enable", "php7.2", "-y"]
        assert cmds[1] == ["yum", "clean", "metadata"]
        assert cmds[2][:3] == ["yum", "install", "-y"]
        assert "php-mysqlnd" in cmds[2] and "php-mbstring" in cmds[2]

    def test_services_enabled_and_started(self, plan):
        cmds = [a.params["command"] for a in plan.get_step("servers").actions]
        assert cmds[0] == ["yum", "install", "-y", "httpd", "mariadb-server"]
        assert ["systemctl", "enable", "httpd"] in cmds
        assert ["systemctl", "start", "mariadb"] in cmds

    def test_web_root_permissions(self, plan):
        cmds = [a.params["command"] for a in plan.get_step("web_root").actions]
        assert ["usermod", "-a", "-G", "apache", "ec2-user"] in cmds
        assert ["chown", "-R", "ec2-user:apache", "/var/www"] in cmds
        assert ["find", "/var/www", "-type", "d", "-exec", "chmod", "2775", "{}", "+"] in cmds
        assert ["find", "/var/www", "-type", "f", "-exec", "chmod", "0664", "{}", "+"] in cmds


class TestDatabase:
    def test_sequence(self, plan):
        ids = [a.id.split(".", 1)[1] for a in plan.get_step("database").actions]
        assert ids == [
            "wait-up",
            "stop",
            "wait-stopped",
            "safe-mode",
            "wait-safe-mode",
            "bootstrap-sql",
            "shutdown",
            "wait-shutdown",
            "start",
            "wait-restart",
        ]

    def test_safe_mode_runs_in_background(self, plan):
        action = _action(plan, "database.safe-mode")
        assert action.params["command"] == ["mysqld_safe", "--skip-grant-tables", "--skip-networking"]
        assert action.params["background"] is True

    def test_probes_poll_instead_of_sleeping(self, plan):
        probes = [a for a in plan.get_step("database").actions if a.adapter == "probe"]
        assert len(probes) == 5
        assert all(p.params["command"] == ["mysqladmin", "ping", "--silent"] for p in probes)
        assert _action(plan, "database.wait-shutdown").params["until"] == "failure"
        assert _action(plan, "database.wait-safe-mode").params["until"] == "success"

    def test_sql_piped_on_stdin(self, plan):
        action = _action(plan, "database.bootstrap-sql")
        assert action.params["command"] == ["mysql", "-u", "root"]
        assert "PASSWORD('r00t-Pa55')" in action.params["input"]
        assert "CREATE DATABASE IF NOT EXISTS `wordpress`;" in action.params["input"]

    def test_old_root_credential_must_be_rejected(self, plan):
        action = _action(plan, "database_verify.reject-old")
        assert action.params["expect_failure"] is True
        assert not any(arg.startswith("--password") for arg in action.params["command"])

    def test_new_root_credential_must_be_accepted(self, plan):
        action = _action(plan, "database_verify.accept-new")
        assert "--password=r00t-Pa55" in action.params["command"]
        assert not action.params.get("expect_failure")


class TestArtifacts:
    def test_phpmyadmin(self, plan):
        action = _action(plan, "phpmyadmin.extract")
        assert action.params["dest"] == "/var/www/html/phpMyAdmin"
        assert action.params["strip_components"] == 1

    def test_wordpress_sequence(self, plan):
        ids = [a.id.split(".", 1)[1] for a in plan.get_step("wordpress").actions]
        assert ids == ["clean-staging", "extract", "wp-config", "copy-root", "mkdir-blog", "copy-blog", "remove-staging"]

    def test_wp_config_rendered_from_sample(self, plan):
        action = _action(plan, "wordpress.wp-config")
        assert action.params["source"].endswith("/wordpress/wp-config-sample.php")
        assert action.params["path"].endswith("/wordpress/wp-config.php")
        assert action.params["replacements"] == {
            "database_name_here": "wordpress",
            "username_here": "wpuser",
            "password_here": "db-Pa55",
        }
        assert action.params["required"] == list(WP_CONFIG_TOKENS)

    def test_copied_to_root_and_blog(self, plan):
        assert _action(plan, "wordpress.copy-root").params["path"] == "/var/www/html"
        assert _action(plan, "wordpress.copy-blog").params["path"] == "/var/www/html/blog"

    def test_wp_cli_executable(self, plan):
        action = _action(plan, "wp_cli.fetch")
        assert action.params["dest"] == "/usr/local/bin/wp"
        assert action.params["mode"] == 0o755

    def test_theme(self, plan):
        action = _action(plan, "theme.extract")
        assert action.params["dest"] == "/var/www/html/wp-content/themes/twentyseventeen"
        assert action.params["url"].endswith(".zip")


class TestWordPressFinalization:
    def test_core_install_as_web_user(self, plan):
        action = _action(plan, "wordpress_install.core-install")
        cmd = action.params["command"]
        assert action.params["run_as"] == "apache"
        assert cmd[:3] == ["/usr/local/bin/wp", "core", "install"]
        assert "--url=http://ec2-54-1-2-3.us-west-2.compute.amazonaws.com" in cmd
        assert "--title=Richard's Site" in cmd
        assert "--admin_user=admin" in cmd
        assert "--admin_password=adm1n-Pa55" in cmd
        assert "--admin_email=admin@example.com" in cmd
        assert "--skip-email" in cmd
        assert "--path=/var/www/html" in cmd

    def test_site_url_uses_public_ip(self, plan):
        cmds = [a.params["command"] for a in plan.get_step("site_url").actions]
        assert cmds[0][1:5] == ["option", "update", "siteurl", "http://54.1.2.3"]
        assert cmds[1][1:5] == ["option", "update", "home", "http://54.1.2.3"]
        assert cmds[2][1:4] == ["theme", "activate", "twentyseventeen"]

    def test_permissions(self, plan):
        cmds = [a.params["command"] for a in plan.get_step("permissions").actions]
        assert cmds[0] == ["chown", "-R", "apache:apache", "/var/www/html/wp-content/themes"]
        assert cmds[1] == ["chmod", "-R", "755", "/var/www/html/wp-content/themes"]
        assert ["chown", "-R", "apache:apache", "/var/www"] in cmds

    def test_services_restarted(self, plan):
        cmds = [a.params.get("command") for a in plan.get_step("restart_services").actions]
        assert ["systemctl", "restart", "httpd"] in cmds
        assert ["systemctl", "restart", "mariadb"] in cmds


class TestSiteUrls:
    def test_both_present(self, metadata):
        assert site_urls(metadata) == (metadata.hostname_url, metadata.ip_url)

    def test_no_hostname(self):
        md = InstanceMetadata(region="r", public_ipv4="1.2.3.4")
        assert site_urls(md) == ("http://1.2.3.4", "http://1.2.3.4")

    def test_no_ip(self):
        md = InstanceMetadata(region="r", public_hostname="host")
        assert site_urls(md) == ("http://host", "http://host")

    def test_neither(self):
        assert site_urls(InstanceMetadata(region="r")) == ("", "")


class TestSettingsFlowThrough:
    def test_custom_paths_and_title(self, bundle, metadata):
        settings = Settings(wp_path="/srv/www", site_title="Other", theme="twentytwenty")
        plan = build_plan(settings, bundle, metadata)
        assert _action(plan, "wordpress.copy-blog").params["path"] == "/srv/www/blog"
        assert "--title=Other" in _action(plan, "wordpress_install.core-install").params["command"]
        assert _action(plan, "theme.extract").params["dest"] == "/srv/www/wp-content/themes/twentytwenty"
