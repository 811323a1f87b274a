"""
Domain models — Pydantic types for the provisioner.

All models are re-exported here for convenient access:

    from provisioner.core.models import Action, Receipt, ProvisionConfig
"""

from provisioner.core.models.action import Action, Receipt
from provisioner.core.models.config import (
    ProvisionConfig,
    ReleaseConfig,
    RustupConfig,
    VerifyCheck,
)

__all__ = [
    "Action",
    "ProvisionConfig",
    "Receipt",
    "ReleaseConfig",
    "RustupConfig",
    "VerifyCheck",
]
