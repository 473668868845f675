"""Whitelist audit engine — publish-file whitelist checks for npm dependencies."""

from filesentinel.engines.whitelist_audit.compliance import decide_remediation, evaluate_compliance
from filesentinel.engines.whitelist_audit.github_client import (
    GitHubClient,
    RateLimitError,
    decode_content,
)
from filesentinel.engines.whitelist_audit.models import (
    BatchSummary,
    ComplianceResult,
    DependencyRecord,
    ManifestParse,
    RemediationOutcome,
    RemoteContent,
)
from filesentinel.engines.whitelist_audit.remediation import file_remediation
from filesentinel.engines.whitelist_audit.scanner import WhitelistScanner, audit, scan

__all__ = [
    "BatchSummary",
    "ComplianceResult",
    "DependencyRecord",
    "GitHubClient",
    "ManifestParse",
    "RateLimitError",
    "RemediationOutcome",
    "RemoteContent",
    "WhitelistScanner",
    "audit",
    "decide_remediation",
    "decode_content",
    "evaluate_compliance",
    "file_remediation",
    "scan",
]
