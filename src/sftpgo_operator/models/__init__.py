"""
Models package - Pydantic models for type-safe resource handling.

Defines data models for:
- The custom resource envelope the driver is generic over
- SftpgoServer specifications
- Reconciliation actions
"""

from .action import Action
from .common import CustomResource, ObjectMeta
from .server import AdminCredentialsRef, SftpgoServer, SftpgoServerSpec

__all__ = [
    "Action",
    "CustomResource",
    "ObjectMeta",
    "AdminCredentialsRef",
    "SftpgoServer",
    "SftpgoServerSpec",
]
