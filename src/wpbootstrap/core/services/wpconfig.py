"""
wp-config rendering — placeholder substitution on the sample config.

WordPress ships ``wp-config-sample.php`` with literal tokens for the
database settings.  We copy it to ``wp-config.php`` and swap the tokens
for the bundle's values.  A rendered file that still carries a token is
an error: WordPress would boot against a database that does not exist.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

from wpbootstrap.core.models.secrets import SecretBundle, escape_literal

logger = logging.getLogger(__name__)

DB_NAME_TOKEN = "database_name_here"
DB_USER_TOKEN = "username_here"
DB_PASSWORD_TOKEN = "password_here"

WP_CONFIG_TOKENS: tuple[str, ...] = (DB_NAME_TOKEN, DB_USER_TOKEN, DB_PASSWORD_TOKEN)


class PlaceholderError(Exception):
    """Raised when a template cannot yield a fully rendered file.

    Either a required token is absent from the template, or one would
    survive rendering.
    """

    def __init__(self, path: Path, tokens: list[str], problem: str = "Unresolved placeholders in"):
        self.path = path
        self.tokens = tokens
        super().__init__(f"{problem} {path}: {', '.join(tokens)}")


def php_quote(value: str) -> str:
    """Escape a value for a single-quoted PHP string literal."""
    return escape_literal(value)


def wp_config_replacements(bundle: SecretBundle) -> dict[str, str]:
    """Token → value mapping for the database block of wp-config.php."""
    return {
        DB_NAME_TOKEN: php_quote(bundle.db_name),
        DB_USER_TOKEN: php_quote(bundle.db_user),
        DB_PASSWORD_TOKEN: php_quote(bundle.db_password.get_secret_value()),
    }


def substitute(text: str, replacements: dict[str, str]) -> str:
    """Replace every occurrence of each token with its value.

    All tokens are matched in a single pass, so a substituted value is
    never rescanned for tokens.
    """
    if not replacements:
        return text
    pattern = _token_pattern(replacements)
    return pattern.sub(lambda m: replacements[m.group(0)], text)


def _token_pattern(replacements: dict[str, str]) -> re.Pattern[str]:
    alternatives = sorted(replacements, key=len, reverse=True)
    return re.compile("|".join(re.escape(t) for t in alternatives))


def unresolved_tokens(
    text: str,
    tokens: tuple[str, ...] | list[str],
    replacements: dict[str, str] | None = None,
) -> list[str]:
    """Return the tokens ``text`` would still contain after substitution.

    Only template text is checked: substituted values may contain
    anything, including a token.
    """
    if replacements:
        text = _token_pattern(replacements).sub("", text)
    return [t for t in tokens if t in text]


def render_file(
    source: Path,
    target: Path,
    replacements: dict[str, str],
    required: tuple[str, ...] | list[str] | None = None,
) -> Path:
    """Render ``source`` into ``target`` with tokens replaced.

    Args:
        source: Template file (e.g. ``wp-config-sample.php``).
        target: Output file; may be the same path as ``source``.
        replacements: Token → value mapping.
        required: Tokens the template must contain and that must be
            gone after rendering. Defaults to the keys of ``replacements``.

    Raises:
        PlaceholderError: If a required token is missing from the
            template or survives rendering.
        OSError: If the files cannot be read or written.
    """
    text = source.read_text(encoding="utf-8")
    required = list(required or replacements)

    absent = [t for t in required if t not in text]
    if absent:
        raise PlaceholderError(source, absent, "Placeholders missing from")

    leftover = unresolved_tokens(text, required, replacements)
    if leftover:
        raise PlaceholderError(target, leftover)

    missing = [t for t in replacements if t not in text]
    if missing:
        logger.warning("Tokens not found in %s: %s", source, ", ".join(missing))

    rendered = substitute(text, replacements)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(rendered, encoding="utf-8")
    logger.debug("Rendered %s from %s (%d tokens)", target, source, len(replacements))
    return target
