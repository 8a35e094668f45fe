"""
Utilities package - Helper functions and utilities for the SFTPGo operator.

Contains:
- admin_token: Admin token model, reader/writer lock and credential cache
- sftpgo_client: SFTPGo admin API client and per-server client registry
- kubernetes: Kubernetes client setup and status patching
- secrets: Reading and decoding credential secrets
- watch: kopf-backed watch stream of custom resources
"""
