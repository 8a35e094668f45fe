"""
Constants used throughout the SFTPGo operator.

This module defines all constant values used by the operator including:
- Custom resource coordinates
- SFTPGo admin API paths
- Reconciliation and credential policy defaults
- Status message templates
"""

# Custom resource coordinates
API_GROUP = "sftpgo.operator.dev"
API_VERSION = "v1alpha1"
KIND_SFTPGO_SERVER = "SftpgoServer"
PLURAL_SFTPGO_SERVERS = "sftpgoservers"

# SFTPGo admin API
ADMIN_TOKEN_PATH = "/api/v2/token"

# Retry policy: every failed reconcile is revisited after this delay (seconds).
# Fixed, not exponential.
DEFAULT_RETRY_DELAY_SECONDS = 15

# Subtracted from the issuer-reported expiry of an admin token (seconds)
TOKEN_SAFETY_MARGIN_SECONDS = 30

# Periodic re-check of a healthy SftpgoServer (seconds)
DEFAULT_RESYNC_SECONDS = 300

# Transport defaults
DEFAULT_REQUEST_TIMEOUT_SECONDS = 30
DEFAULT_MAX_CONCURRENT_RECONCILES = 20

# Secret key defaults for admin credentials
DEFAULT_USERNAME_KEY = "username"
DEFAULT_PASSWORD_KEY = "password"

# Error message templates
ERROR_MISSING_SECRET = "Required secret '{}' not found in namespace '{}'"
ERROR_MISSING_SECRET_KEY = "Secret '{}' in namespace '{}' has no key '{}'"

# Success message templates
SUCCESS_CONNECTED = "Authenticated against SFTPGo admin API"
