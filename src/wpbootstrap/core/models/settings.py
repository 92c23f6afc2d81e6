"""
Settings model — every constant of the provisioning recipe.

Defaults reproduce the hardcoded bootstrap exactly; a settings file
only needs to name what it changes.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class Downloads(BaseModel):
    """Where third-party artifacts come from (always "latest")."""

    wordpress: str = "https://wordpress.org/latest.tar.gz"
    phpmyadmin: str = (
        "https://www.phpmyadmin.net/downloads/phpMyAdmin-latest-all-languages.tar.gz"
    )
    wp_cli: str = "https://raw.githubusercontent.com/wp-cli/builds/gh-pages/phar/wp-cli.phar"
    theme: str = "https://github.com/WordPress/twentyseventeen/archive/refs/heads/master.zip"


class Settings(BaseModel):
    """Provisioning parameters."""

    model_config = ConfigDict(extra="forbid")

    # Run bookkeeping
    log_file: str = "/var/log/setup.log"
    state_dir: str = "/var/lib/wpbootstrap"
    staging_dir: str = "/tmp/wpbootstrap"

    # Secrets and metadata
    secret_name: str = "wordpress/secrets"
    region: str | None = None               # None = read from instance metadata
    metadata_url: str = "http://169.254.169.254"
    metadata_timeout: float = 5.0

    # Site
    site_title: str = "Richard's Site"
    theme: str = "twentyseventeen"

    # Filesystem layout and identities
    web_root: str = "/var/www"
    wp_path: str = "/var/www/html"
    blog_subdir: str = "blog"
    phpmyadmin_subdir: str = "phpMyAdmin"
    web_user: str = "apache"
    web_group: str = "apache"
    deploy_user: str = "ec2-user"
    wp_cli_path: str = "/usr/local/bin/wp"

    # Packages and services
    php_topic: str = "php7.2"
    php_packages: list[str] = Field(default_factory=lambda: [
        "php", "php-cli", "php-mysqlnd", "php-fpm", "php-json",
        "php-common", "php-devel", "php-mbstring", "unzip", "curl",
    ])
    server_packages: list[str] = Field(default_factory=lambda: ["httpd", "mariadb-server"])
    web_service: str = "httpd"
    db_service: str = "mariadb"

    downloads: Downloads = Field(default_factory=Downloads)

    # Timing
    readiness_timeout: float = 60.0
    readiness_interval: float = 1.0
    command_timeout: int = 900
    download_timeout: int = 120

    @property
    def blog_path(self) -> str:
        return f"{self.wp_path}/{self.blog_subdir}"

    @property
    def phpmyadmin_path(self) -> str:
        return f"{self.wp_path}/{self.phpmyadmin_subdir}"

    @property
    def themes_dir(self) -> str:
        return f"{self.wp_path}/wp-content/themes"

    @property
    def theme_path(self) -> str:
        return f"{self.themes_dir}/{self.theme}"

    @property
    def web_owner(self) -> str:
        return f"{self.web_user}:{self.web_group}"
