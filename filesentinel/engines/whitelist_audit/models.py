"""Data models for the whitelist audit engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal

ComplianceKind = Literal["whitelist", "not_declared", "unknown"]
ContentStatus = Literal["found", "absent", "failed"]
IgnoreState = Literal["present", "absent", "unknown"]
Verdict = Literal["compliant", "non_compliant", "unknown"]
RemediationStatus = Literal["filed", "duplicate", "skipped", "failed"]
DependencyState = Literal[
    "discovered",
    "manifest_read",
    "identity_resolved",
    "identity_unresolved",
    "local_compliance_known",
    "remote_fetched",
    "settled",
]


@dataclass(frozen=True)
class ComplianceResult:
    """Whether a manifest declares a ``files`` whitelist."""

    kind: ComplianceKind
    patterns: tuple[Any, ...] = ()
    reason: str | None = None

    @classmethod
    def whitelist(cls, patterns: list[Any]) -> ComplianceResult:
        return cls(kind="whitelist", patterns=tuple(patterns))

    @classmethod
    def not_declared(cls) -> ComplianceResult:
        return cls(kind="not_declared")

    @classmethod
    def unknown(cls, reason: str) -> ComplianceResult:
        return cls(kind="unknown", reason=reason)

    @property
    def declared(self) -> bool:
        return self.kind == "whitelist"


@dataclass(frozen=True)
class ManifestParse:
    """Outcome of parsing a package.json document.

    On failure *data* is empty and *error* carries the reason.
    """

    data: dict[str, Any]
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class RemoteContent:
    """A single contents API read, consumed once and never persisted."""

    status: ContentStatus
    text: str | None = None
    error: str | None = None
    transient: bool = False


@dataclass(frozen=True)
class RemediationOutcome:
    """Result of trying to file a remediation issue."""

    status: RemediationStatus
    issue_url: str | None = None
    error: str | None = None


@dataclass
class DependencyRecord:
    """Per-dependency state, mutated by each orchestration stage."""

    path: Path
    name: str
    manifest: dict[str, Any] = field(default_factory=dict)
    identity: str | None = None
    local: ComplianceResult | None = None
    remote_manifest: ComplianceResult | None = None
    remote_ignore: IgnoreState | None = None
    verdict: Verdict = "unknown"
    remediation: RemediationOutcome | None = None
    state: DependencyState = "discovered"
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        def _compliance(result: ComplianceResult | None) -> dict[str, Any] | None:
            if result is None:
                return None
            return {
                "kind": result.kind,
                "patterns": list(result.patterns),
                "reason": result.reason,
            }

        return {
            "name": self.name,
            "path": str(self.path),
            "identity": self.identity,
            "local": _compliance(self.local),
            "remote_manifest": _compliance(self.remote_manifest),
            "remote_ignore": self.remote_ignore,
            "verdict": self.verdict,
            "remediation": (
                {
                    "status": self.remediation.status,
                    "issue_url": self.remediation.issue_url,
                    "error": self.remediation.error,
                }
                if self.remediation
                else None
            ),
            "state": self.state,
            "errors": list(self.errors),
        }


EXIT_OK = 0
EXIT_PARTIAL = 1
EXIT_FATAL = 2


@dataclass
class BatchSummary:
    """Ordered outcomes of one audit run, built after every chain settles."""

    root: Path
    records: list[DependencyRecord] = field(default_factory=list)
    dropped: list[tuple[Path, str]] = field(default_factory=list)

    @property
    def compliant(self) -> list[DependencyRecord]:
        return [r for r in self.records if r.verdict == "compliant"]

    @property
    def non_compliant(self) -> list[DependencyRecord]:
        return [r for r in self.records if r.verdict == "non_compliant"]

    @property
    def unknown(self) -> list[DependencyRecord]:
        return [r for r in self.records if r.verdict == "unknown"]

    @property
    def unresolved(self) -> list[DependencyRecord]:
        return [r for r in self.records if r.identity is None]

    @property
    def failed(self) -> list[DependencyRecord]:
        return [r for r in self.records if r.errors]

    @property
    def remediated(self) -> list[DependencyRecord]:
        return [
            r
            for r in self.records
            if r.remediation is not None and r.remediation.status == "filed"
        ]

    @property
    def exit_code(self) -> int:
        """0 when everything settled cleanly, 1 on any partial failure."""
        if self.dropped or self.failed:
            return EXIT_PARTIAL
        return EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        return {
            "root": str(self.root),
            "totals": {
                "checked": len(self.records),
                "compliant": len(self.compliant),
                "non_compliant": len(self.non_compliant),
                "unknown": len(self.unknown),
                "unresolved": len(self.unresolved),
                "failed": len(self.failed),
                "remediated": len(self.remediated),
                "dropped": len(self.dropped),
            },
            "dependencies": [r.to_dict() for r in self.records],
            "dropped": [{"path": str(p), "reason": reason} for p, reason in self.dropped],
        }
