"""
Secret retrieval — fetch and validate the WordPress secret bundle.

One ``GetSecretValue`` call against AWS Secrets Manager, no retries.
Every failure raises ``SecretError`` carrying the operator-facing
message; the use case turns it into exit code 1.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from wpbootstrap.core.models.secrets import REQUIRED_KEYS, SecretBundle

logger = logging.getLogger(__name__)

RETRIEVAL_FAILED = (
    "Error: Failed to retrieve secret from AWS Secrets Manager.\n"
    "Make sure the instance has an IAM role with permissions to access Secrets Manager."
)
VALIDATION_FAILED = (
    "Error: Failed to retrieve one or more required secrets from AWS Secrets Manager.\n"
    "Make sure the secret contains all required keys."
)


class SecretError(Exception):
    """Raised when the secret bundle cannot be retrieved or is incomplete.

    ``str(err)`` is the operator message; ``detail`` says what went wrong.
    """

    def __init__(self, message: str, detail: str = "", missing: list[str] | None = None):
        super().__init__(message)
        self.detail = detail
        self.missing = missing or []


def secrets_client(region: str) -> Any:
    """Secrets Manager client for ``region``."""
    return boto3.client("secretsmanager", region_name=region)


def fetch_secret_string(client: Any, secret_id: str) -> str:
    """Return the ``SecretString`` of ``secret_id``.

    Raises:
        SecretError: On any AWS error or an empty secret string.
    """
    try:
        response = client.get_secret_value(SecretId=secret_id)
    except ClientError as e:
        code = e.response.get("Error", {}).get("Code", "ClientError")
        raise SecretError(RETRIEVAL_FAILED, detail=f"{code} for {secret_id}") from e
    except BotoCoreError as e:
        raise SecretError(RETRIEVAL_FAILED, detail=str(e)) from e

    secret_string = response.get("SecretString") or ""
    if not secret_string.strip():
        raise SecretError(RETRIEVAL_FAILED, detail=f"{secret_id} has no SecretString")
    return secret_string


def missing_keys(payload: dict[str, Any]) -> list[str]:
    """Required keys that are absent, null, non-string or blank."""
    missing = []
    for key in REQUIRED_KEYS:
        value = payload.get(key)
        if not isinstance(value, str) or not value.strip():
            missing.append(key)
    return missing


def parse_bundle(secret_string: str) -> SecretBundle:
    """Parse and validate a secret payload.

    Raises:
        SecretError: If the payload is not a JSON object (retrieval
            message) or a required key is empty (validation message).
    """
    try:
        payload = json.loads(secret_string)
    except json.JSONDecodeError as e:
        raise SecretError(RETRIEVAL_FAILED, detail=f"secret is not JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise SecretError(
            RETRIEVAL_FAILED,
            detail=f"secret is a JSON {type(payload).__name__}, expected an object",
        )

    missing = missing_keys(payload)
    if missing:
        raise SecretError(
            VALIDATION_FAILED,
            detail=f"empty or missing: {', '.join(missing)}",
            missing=missing,
        )

    return SecretBundle.model_validate({key: payload[key] for key in REQUIRED_KEYS})


def retrieve_bundle(region: str, secret_id: str, client: Any | None = None) -> SecretBundle:
    """Fetch ``secret_id`` from Secrets Manager in ``region`` and validate it.

    Args:
        region: AWS region of the secret.
        secret_id: Secret name or ARN.
        client: Optional pre-built client (tests inject a stubbed one).
    """
    logger.info("Retrieving secrets from AWS Secrets Manager in region %s...", region)
    if client is None:
        client = secrets_client(region)

    bundle = parse_bundle(fetch_secret_string(client, secret_id))
    logger.info("Secret bundle %s validated (%d keys)", secret_id, len(REQUIRED_KEYS))
    return bundle
