"""Prometheus metrics for AgencyHub.

Defines operational metrics for the tenant-isolation and secrets layer.
"""

from prometheus_client import Counter

# Organization context resolution
org_context_resolutions_total = Counter(
    "agencyhub_org_context_resolutions_total",
    "Organization context resolutions by outcome",
    ["outcome"]  # selector|preference|default|no_auth|no_org|invalid_org|internal_error
)

# Active organization switches
org_switches_total = Counter(
    "agencyhub_org_switches_total",
    "Active organization switch attempts by outcome",
    ["outcome"]  # success|not_member|internal_error
)

# Audit writes
audit_writes_total = Counter(
    "agencyhub_audit_writes_total",
    "Audit record write attempts",
    ["path", "status"]  # path: tenant|system|generic, status: success|error
)

# Secret cipher
secret_decrypt_failures_total = Counter(
    "agencyhub_secret_decrypt_failures_total",
    "Secret decryption failures",
    ["reason"]  # authentication_failed|malformed
)
