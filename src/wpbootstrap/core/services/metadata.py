"""
Instance metadata — region and public addresses from EC2 IMDS.

Tries IMDSv2 first (session token via ``PUT /latest/api/token``) and
falls back to plain IMDSv1 GETs when no token can be obtained.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any

from wpbootstrap.core.models.metadata import InstanceMetadata

logger = logging.getLogger(__name__)

IDENTITY_PATH = "/latest/dynamic/instance-identity/document"
HOSTNAME_PATH = "/latest/meta-data/public-hostname"
IPV4_PATH = "/latest/meta-data/public-ipv4"
TOKEN_PATH = "/latest/api/token"
TOKEN_TTL_SECONDS = 21600

Opener = Callable[..., Any]


class MetadataError(Exception):
    """Raised when the instance metadata service cannot be read."""


class MetadataClient:
    """Minimal IMDS reader.

    ``opener`` defaults to ``urllib.request.urlopen``; tests pass a fake.
    """

    def __init__(
        self,
        base_url: str = "http://169.254.169.254",
        timeout: float = 5.0,
        opener: Opener | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._open = opener or urllib.request.urlopen
        self._token: str | None = None
        self._token_tried = False

    def _fetch_token(self) -> str | None:
        if self._token_tried:
            return self._token
        self._token_tried = True
        req = urllib.request.Request(
            self._base_url + TOKEN_PATH,
            method="PUT",
            headers={"X-aws-ec2-metadata-token-ttl-seconds": str(TOKEN_TTL_SECONDS)},
        )
        try:
            with self._open(req, timeout=self._timeout) as resp:
                self._token = resp.read().decode("utf-8").strip() or None
        except (urllib.error.URLError, OSError) as e:
            logger.debug("IMDSv2 token unavailable, using IMDSv1: %s", e)
            self._token = None
        return self._token

    def get(self, path: str) -> str:
        """GET a metadata path and return its body as text.

        Raises:
            MetadataError: On any network or HTTP failure.
        """
        headers = {}
        token = self._fetch_token()
        if token:
            headers["X-aws-ec2-metadata-token"] = token

        req = urllib.request.Request(self._base_url + path, headers=headers)
        try:
            with self._open(req, timeout=self._timeout) as resp:
                return resp.read().decode("utf-8").strip()
        except (urllib.error.URLError, OSError) as e:
            raise MetadataError(f"Cannot read instance metadata {path}: {e}") from e

    def region(self) -> str:
        """Region from the instance identity document."""
        raw = self.get(IDENTITY_PATH)
        try:
            doc = json.loads(raw)
        except json.JSONDecodeError as e:
            raise MetadataError(f"Invalid instance identity document: {e}") from e
        region = doc.get("region") if isinstance(doc, dict) else None
        if not region:
            raise MetadataError("Instance identity document has no region")
        return str(region)

    def optional(self, path: str) -> str:
        """Like ``get`` but returns '' when the value is absent (no public IP)."""
        try:
            return self.get(path)
        except MetadataError as e:
            logger.warning("%s", e)
            return ""


def read_instance_metadata(
    client: MetadataClient,
    region: str | None = None,
) -> InstanceMetadata:
    """Collect region, public hostname and public IPv4.

    Args:
        client: IMDS reader.
        region: Pinned region; skips the identity document lookup.

    Raises:
        MetadataError: If the region cannot be determined.
    """
    if not region:
        region = client.region()
    metadata = InstanceMetadata(
        region=region,
        public_hostname=client.optional(HOSTNAME_PATH),
        public_ipv4=client.optional(IPV4_PATH),
    )
    logger.info(
        "Instance metadata: region=%s hostname=%s ipv4=%s",
        metadata.region,
        metadata.public_hostname or "-",
        metadata.public_ipv4 or "-",
    )
    return metadata
