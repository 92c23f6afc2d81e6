"""Instance metadata — the facts about the host we are provisioning."""

from __future__ import annotations

from pydantic import BaseModel


class InstanceMetadata(BaseModel):
    """Values read from the EC2 instance metadata service."""

    region: str
    public_hostname: str = ""
    public_ipv4: str = ""

    @property
    def hostname_url(self) -> str:
        return f"http://{self.public_hostname}"

    @property
    def ip_url(self) -> str:
        return f"http://{self.public_ipv4}"
