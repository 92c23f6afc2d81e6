"""
Database bootstrap — SQL and client commands for MariaDB setup.

The root password is set while the server runs with
``--skip-grant-tables``, so the statements edit ``mysql.user`` directly
and ``FLUSH PRIVILEGES`` re-enables the grant system before the
application user is created.
"""

from __future__ import annotations

from wpbootstrap.core.models.secrets import SecretBundle, escape_literal
from wpbootstrap.core.services.wpconfig import php_quote


def sql_string(value: str) -> str:
    """Quote a value as a single-quoted SQL string literal."""
    return f"'{escape_literal(value)}'"


def sql_identifier(name: str) -> str:
    """Quote a name as a backtick identifier."""
    return "`" + name.replace("`", "``") + "`"


def bootstrap_sql(bundle: SecretBundle) -> str:
    """Statements that set the root password and create the app database/user."""
    root_pw = sql_string(bundle.mysql_root_password.get_secret_value())
    db = sql_identifier(bundle.db_name)
    user = sql_string(bundle.db_user)
    user_pw = sql_string(bundle.db_password.get_secret_value())

    return "\n".join([
        f"UPDATE mysql.user SET password = PASSWORD({root_pw}) "
        "WHERE User = 'root' AND Host = 'localhost';",
        "FLUSH PRIVILEGES;",
        "",
        f"CREATE DATABASE IF NOT EXISTS {db};",
        "",
        f"DELETE FROM mysql.user WHERE User = {user} AND Host = 'localhost';",
        "FLUSH PRIVILEGES;",
        "",
        f"CREATE USER {user}@'localhost' IDENTIFIED BY {user_pw};",
        f"GRANT ALL PRIVILEGES ON {db}.* TO {user}@'localhost';",
        "FLUSH PRIVILEGES;",
        "",
    ])


def ping_command() -> list[str]:
    """Liveness probe; exits 0 whenever the server answers, even on auth errors."""
    return ["mysqladmin", "ping", "--silent"]


def root_login_command(password: str | None = None) -> list[str]:
    """A trivial root query, with or without a password."""
    cmd = ["mysql", "-u", "root"]
    if password is not None:
        cmd.append(f"--password={password}")
    return cmd + ["-e", "SELECT 1"]


def shutdown_command(password: str) -> list[str]:
    return ["mysqladmin", "-u", "root", f"--password={password}", "shutdown"]


def php_connect_check(bundle: SecretBundle) -> list[str]:
    """``php -r`` snippet that connects as the application user."""
    code = (
        "if (@mysqli_connect('localhost', "
        f"'{php_quote(bundle.db_user)}', "
        f"'{php_quote(bundle.db_password.get_secret_value())}', "
        f"'{php_quote(bundle.db_name)}')) "
        '{ print("PHP: DB connection works\\n"); } '
        'else { print("PHP: DB connection failed\\n"); exit(1); }'
    )
    return ["php", "-r", code]
