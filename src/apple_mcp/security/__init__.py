"""Input validation, escaping, rate limiting, audit and authentication."""

from apple_mcp.security.audit import AuditLogEntry, AuditLogger
from apple_mcp.security.auth import check_authentication, require_authentication
from apple_mcp.security.rate_limit import OperationClass, RateLimiter, RateLimiterRegistry

__all__ = [
    "AuditLogEntry",
    "AuditLogger",
    "OperationClass",
    "RateLimiter",
    "RateLimiterRegistry",
    "check_authentication",
    "require_authentication",
]
