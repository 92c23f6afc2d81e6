"""
Domain models — Pydantic types for the provisioner.

    from wpbootstrap.core.models import Action, Receipt, SecretBundle, Settings
"""

from wpbootstrap.core.models.action import Action, Receipt
from wpbootstrap.core.models.metadata import InstanceMetadata
from wpbootstrap.core.models.secrets import REQUIRED_KEYS, SecretBundle
from wpbootstrap.core.models.settings import Downloads, Settings

__all__ = [
    # action.py
    "Action",
    "Receipt",
    # metadata.py
    "InstanceMetadata",
    # secrets.py
    "REQUIRED_KEYS",
    "SecretBundle",
    # settings.py
    "Downloads",
    "Settings",
]
