"""
Secrets check use case — validate the secret bundle without provisioning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from wpbootstrap.core.models.secrets import REQUIRED_KEYS
from wpbootstrap.core.models.settings import Settings
from wpbootstrap.core.services.metadata import MetadataClient, MetadataError
from wpbootstrap.core.services.secrets import SecretError, retrieve_bundle


@dataclass
class SecretsCheckResult:
    """Result of a secret bundle check. Never carries secret values."""

    secret_name: str = ""
    region: str = ""
    valid: bool = False
    present: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    error: str | None = None
    detail: str = ""

    def to_dict(self) -> dict:
        return {
            "secret_name": self.secret_name,
            "region": self.region,
            "valid": self.valid,
            "present": self.present,
            "missing": self.missing,
            "error": self.error,
            "detail": self.detail,
        }


def check_secrets(
    settings: Settings,
    secrets_client: Any | None = None,
    metadata_client: MetadataClient | None = None,
) -> SecretsCheckResult:
    """Fetch the secret bundle and report which required keys are usable.

    Args:
        settings: Provides the secret name and (optionally) the region.
        secrets_client: Optional Secrets Manager client.
        metadata_client: Optional IMDS reader, used when no region is pinned.
    """
    result = SecretsCheckResult(secret_name=settings.secret_name)

    region = settings.region
    if not region:
        try:
            if metadata_client is None:
                metadata_client = MetadataClient(settings.metadata_url, settings.metadata_timeout)
            region = metadata_client.region()
        except MetadataError as e:
            result.error = str(e)
            return result
    result.region = region

    try:
        retrieve_bundle(region, settings.secret_name, client=secrets_client)
    except SecretError as e:
        result.error = str(e)
        result.detail = e.detail
        result.missing = e.missing
        result.present = [k for k in REQUIRED_KEYS if k not in e.missing] if e.missing else []
        return result

    result.valid = True
    result.present = list(REQUIRED_KEYS)
    return result
