"""
Secret bundle model — the credentials fetched once per run.

The bundle lives only in process memory.  Password fields are
``SecretStr`` so they never show up in reprs, logs or dumps.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, SecretStr

# Keys the secret payload must carry, in the order they are checked.
REQUIRED_KEYS: tuple[str, ...] = (
    "MYSQL_ROOT_PASSWORD",
    "WP_DB_NAME",
    "WP_DB_USER",
    "WP_DB_PASSWORD",
    "WP_ADMIN_USER",
    "WP_ADMIN_PASSWORD",
    "WP_ADMIN_EMAIL",
)


class SecretBundle(BaseModel):
    """The seven named fields of the WordPress secret."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    mysql_root_password: SecretStr = Field(alias="MYSQL_ROOT_PASSWORD")
    db_name: str = Field(alias="WP_DB_NAME")
    db_user: str = Field(alias="WP_DB_USER")
    db_password: SecretStr = Field(alias="WP_DB_PASSWORD")
    admin_user: str = Field(alias="WP_ADMIN_USER")
    admin_password: SecretStr = Field(alias="WP_ADMIN_PASSWORD")
    admin_email: str = Field(alias="WP_ADMIN_EMAIL")

    def sensitive_values(self) -> list[str]:
        """Plain-text values that must be masked wherever commands are logged.

        Each password is listed raw and in its quoted-literal form
        (backslash and single quote escaped), which is how it appears
        inside SQL statements and PHP snippets.
        """
        values: list[str] = []
        for secret in (self.mysql_root_password, self.db_password, self.admin_password):
            raw = secret.get_secret_value()
            for value in (raw, escape_literal(raw)):
                if value not in values:
                    values.append(value)
        return values


def escape_literal(value: str) -> str:
    """Escape backslashes and single quotes for a single-quoted literal."""
    return value.replace("\\", "\\\\").replace("'", "\\'")
