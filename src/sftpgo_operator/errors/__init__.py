"""
Error handling module for the SFTPGo operator.

This module provides the error taxonomy shared by the credential cache,
the SFTPGo client and the reconcilers.
"""

from .operator_errors import (
    AuthIssuanceError,
    ClusterApiError,
    DecodingError,
    ExternalApiError,
    OperatorError,
    UserInputError,
)

__all__ = [
    "OperatorError",
    "ClusterApiError",
    "UserInputError",
    "AuthIssuanceError",
    "ExternalApiError",
    "DecodingError",
]
