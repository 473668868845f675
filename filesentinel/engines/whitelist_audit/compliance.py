"""Compliance evaluation and the remediation decision (pure functions)."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from filesentinel.engines.whitelist_audit.models import (
    ComplianceResult,
    IgnoreState,
    ManifestParse,
    Verdict,
)


def evaluate_compliance(
    manifest: Mapping[str, Any] | ManifestParse | None,
) -> ComplianceResult:
    """Report whether *manifest* declares a ``files`` whitelist.

    Only a JSON array counts; a string or object under ``files`` does not.
    A failed parse is reported as ``unknown`` rather than ``not_declared``.
    """
    if manifest is None:
        return ComplianceResult.not_declared()

    if isinstance(manifest, ManifestParse):
        if not manifest.ok:
            return ComplianceResult.unknown(manifest.error or "unparsable manifest")
        manifest = manifest.data

    files = manifest.get("files")
    if isinstance(files, list):
        return ComplianceResult.whitelist(files)
    return ComplianceResult.not_declared()


def decide_remediation(
    local: ComplianceResult | None,
    remote_manifest: ComplianceResult | None,
    remote_ignore: IgnoreState | None,
) -> Verdict:
    """Combine the three compliance signals into a single verdict.

    Any declared whitelist or a present ``.npmignore`` is enough to comply.
    ``non_compliant`` requires every signal to be positively known as absent;
    anything unresolved leaves the verdict ``unknown`` so no issue is filed.
    """
    signals = [r for r in (local, remote_manifest) if r is not None]
    if any(r.declared for r in signals) or remote_ignore == "present":
        return "compliant"

    if (
        local is not None
        and local.kind == "not_declared"
        and remote_manifest is not None
        and remote_manifest.kind == "not_declared"
        and remote_ignore == "absent"
    ):
        return "non_compliant"

    return "unknown"
