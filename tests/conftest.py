"""
Shared test fixtures and configuration.
"""

from __future__ import annotations

import io
import json
import logging
import urllib.error
import urllib.parse
from pathlib import Path

import boto3
import pytest
from botocore.stub import Stubber

from wpbootstrap.core.models.metadata import InstanceMetadata
from wpbootstrap.core.models.secrets import SecretBundle
from wpbootstrap.core.models.settings import Settings
from wpbootstrap.core.services.metadata import HOSTNAME_PATH, IDENTITY_PATH, IPV4_PATH

SECRET_NAME = "wordpress/secrets"
REGION = "us-west-2"
PUBLIC_HOSTNAME = "ec2-54-1-2-3.us-west-2.compute.amazonaws.com"
PUBLIC_IPV4 = "54.1.2.3"


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put them back after each test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def secret_payload() -> dict[str, str]:
    """A complete secret payload as stored in Secrets Manager."""
    return {
        "MYSQL_ROOT_PASSWORD": "r00t-Pa55",
        "WP_DB_NAME": "wordpress",
        "WP_DB_USER": "wpuser",
        "WP_DB_PASSWORD": "db-Pa55",
        "WP_ADMIN_USER": "admin",
        "WP_ADMIN_PASSWORD": "adm1n-Pa55",
        "WP_ADMIN_EMAIL": "admin@example.com",
    }


@pytest.fixture
def bundle(secret_payload: dict[str, str]) -> SecretBundle:
    return SecretBundle.model_validate(secret_payload)


@pytest.fixture
def metadata() -> InstanceMetadata:
    return InstanceMetadata(region=REGION, public_hostname=PUBLIC_HOSTNAME, public_ipv4=PUBLIC_IPV4)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Default recipe with bookkeeping paths moved under tmp_path."""
    return Settings(
        log_file=str(tmp_path / "setup.log"),
        state_dir=str(tmp_path / "state"),
        staging_dir=str(tmp_path / "staging"),
    )


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    """A settings YAML pointing every writable path at tmp_path."""
    path = tmp_path / "wpbootstrap.yml"
    path.write_text(
        f"log_file: {tmp_path / 'setup.log'}\n"
        f"state_dir: {tmp_path / 'state'}\n"
        f"staging_dir: {tmp_path / 'staging'}\n"
    )
    return path


def make_secrets_client(region: str = REGION) -> tuple[object, Stubber]:
    """A real Secrets Manager client with a botocore Stubber attached."""
    client = boto3.client(
        "secretsmanager",
        region_name=region,
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )
    stubber = Stubber(client)
    stubber.activate()
    return client, stubber


@pytest.fixture
def secrets_stub():
    """Factory: queue a SecretString (or an AWS error) and get the client."""
    stubbers: list[Stubber] = []

    def _make(secret_string: str | None = None, error_code: str | None = None):
        client, stubber = make_secrets_client()
        if error_code:
            stubber.add_client_error(
                "get_secret_value",
                service_error_code=error_code,
                service_message="stubbed",
                http_status_code=400,
                expected_params={"SecretId": SECRET_NAME},
            )
        else:
            stubber.add_response(
                "get_secret_value",
                {"Name": SECRET_NAME, "SecretString": secret_string or ""},
                {"SecretId": SECRET_NAME},
            )
        stubbers.append(stubber)
        return client

    yield _make
    for stubber in stubbers:
        stubber.deactivate()


class FakeIMDS:
    """Stand-in for ``urllib.request.urlopen`` serving instance metadata."""

    def __init__(self, values: dict[str, str] | None = None, token: str | None = "imds-token"):
        self.values = values if values is not None else {
            IDENTITY_PATH: json.dumps({"region": REGION, "instanceId": "i-0abc"}),
            HOSTNAME_PATH: PUBLIC_HOSTNAME,
            IPV4_PATH: PUBLIC_IPV4,
        }
        self.token = token
        self.requests: list = []

    def __call__(self, req, timeout=None):
        self.requests.append(req)
        path = urllib.parse.urlparse(req.full_url).path
        if req.get_method() == "PUT":
            if self.token is None:
                raise urllib.error.URLError("token endpoint disabled")
            return io.BytesIO(self.token.encode())
        if path in self.values:
            return io.BytesIO(self.values[path].encode())
        raise urllib.error.HTTPError(req.full_url, 404, "Not Found", {}, None)


@pytest.fixture
def imds() -> FakeIMDS:
    return FakeIMDS()
