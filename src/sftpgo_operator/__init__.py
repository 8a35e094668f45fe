"""
SFTPGo Operator - A Kubernetes operator that drives SFTPGo servers.

This operator provides:
- A generic reconciliation driver with a uniform fixed-delay retry policy
- A concurrency-safe cache of SFTPGo admin tokens
- Structured logging and Prometheus metrics
"""

__version__ = "0.1.0"
