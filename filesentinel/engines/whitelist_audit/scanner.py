"""Scan orchestrator — check every installed dependency and file remediation."""

from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import structlog

from filesentinel.core.config import DEFAULT_MAX_CONCURRENCY, AuditConfig
from filesentinel.core.exceptions import ManifestUnreadableError
from filesentinel.core.github import resolve_identity
from filesentinel.engines.whitelist_audit.compliance import decide_remediation, evaluate_compliance
from filesentinel.engines.whitelist_audit.github_client import GitHubClient
from filesentinel.engines.whitelist_audit.manifest import MANIFEST_NAME, parse_manifest, read_manifest
from filesentinel.engines.whitelist_audit.models import (
    BatchSummary,
    ComplianceResult,
    DependencyRecord,
    IgnoreState,
    RemediationOutcome,
    RemoteContent,
)
from filesentinel.engines.whitelist_audit.remediation import file_remediation

log = structlog.get_logger("filesentinel.engine")

DEPENDENCY_ROOT = "node_modules"
IGNORE_NAME = ".npmignore"


def discover_dependencies(
    root: Path, dropped: list[tuple[Path, str]] | None = None
) -> list[Path]:
    """List installed package directories under *root* in listing order.

    Plain files and hidden entries (``.bin``, ``.cache``) are skipped.
    Scoped packages are expanded one level: ``@scope/name``.  Directories
    that cannot be listed are appended to *dropped* instead of raising.
    """
    if dropped is None:
        dropped = []

    try:
        entries = sorted(root.iterdir())
    except OSError as exc:
        log.warning("audit.root_unreadable", root=str(root), error=str(exc))
        dropped.append((root, str(exc)))
        return []

    found: list[Path] = []
    for entry in entries:
        if entry.name.startswith(".") or not entry.is_dir():
            continue
        if entry.name.startswith("@"):
            try:
                children = sorted(entry.iterdir())
            except OSError as exc:
                log.warning("audit.scope_unreadable", scope=str(entry), error=str(exc))
                dropped.append((entry, str(exc)))
                continue
            found.extend(
                child for child in children if child.is_dir() and not child.name.startswith(".")
            )
            continue
        found.append(entry)
    return found


def _remote_compliance(content: RemoteContent, identity: str) -> ComplianceResult:
    if content.status == "absent":
        return ComplianceResult.not_declared()
    if content.status == "failed":
        return ComplianceResult.unknown(content.error or "fetch failed")
    return evaluate_compliance(
        parse_manifest(content.text or "", source=f"{identity}/{MANIFEST_NAME}")
    )


def _ignore_state(content: RemoteContent) -> IgnoreState:
    if content.status == "found":
        return "present"
    if content.status == "absent":
        return "absent"
    return "unknown"


class WhitelistScanner:
    """Runs the per-dependency pipeline and aggregates the batch."""

    def __init__(
        self,
        client: GitHubClient,
        *,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        dedupe: bool = True,
        dry_run: bool = False,
    ) -> None:
        self._client = client
        self._sem = asyncio.Semaphore(max_concurrency)
        self._dedupe = dedupe
        self._dry_run = dry_run
        # Packages from one monorepo share an identity; file for it once per run.
        self._remediation_locks: dict[str, asyncio.Lock] = {}
        self._remediations: dict[str, RemediationOutcome] = {}

    def load(self, package_dir: Path) -> DependencyRecord:
        """Local stages: read manifest, resolve identity, evaluate local compliance.

        Raises ManifestUnreadableError when package.json is missing or unreadable.
        """
        record = DependencyRecord(path=package_dir, name=_package_name(package_dir))
        parsed = read_manifest(package_dir)
        record.manifest = parsed.data
        record.state = "manifest_read"
        if not parsed.ok:
            record.errors.append(f"unparsable manifest: {parsed.error}")

        record.identity = resolve_identity(parsed.data)
        record.state = "identity_resolved" if record.identity else "identity_unresolved"

        record.local = evaluate_compliance(parsed)
        record.state = "local_compliance_known"
        return record

    async def check_remote(self, record: DependencyRecord) -> DependencyRecord:
        """Remote stages for a resolved dependency; always settles the record."""
        identity = record.identity
        if identity is None:
            record.verdict = decide_remediation(record.local, None, None)
            record.state = "settled"
            return record

        async with self._sem:
            manifest_content, ignore_content = await asyncio.gather(
                self._client.get_contents(identity, MANIFEST_NAME),
                self._client.get_contents(identity, IGNORE_NAME),
            )
            record.remote_manifest = _remote_compliance(manifest_content, identity)
            record.remote_ignore = _ignore_state(ignore_content)
            record.state = "remote_fetched"
            for content, path in ((manifest_content, MANIFEST_NAME), (ignore_content, IGNORE_NAME)):
                if content.status == "failed":
                    record.errors.append(f"fetch {path} failed: {content.error}")

            record.verdict = decide_remediation(
                record.local, record.remote_manifest, record.remote_ignore
            )
            if record.verdict == "non_compliant":
                record.remediation = await self._remediate(identity)
                if record.remediation.status == "failed":
                    record.errors.append(f"remediation failed: {record.remediation.error}")

        record.state = "settled"
        log.info(
            "audit.settled",
            package=record.name,
            repo=identity,
            verdict=record.verdict,
            local=record.local.kind if record.local else None,
            remote=record.remote_manifest.kind if record.remote_manifest else None,
            npmignore=record.remote_ignore,
        )
        return record

    async def _remediate(self, identity: str) -> RemediationOutcome:
        """File remediation for *identity* at most once per scan."""
        lock = self._remediation_locks.setdefault(identity, asyncio.Lock())
        async with lock:
            previous = self._remediations.get(identity)
            if previous is None:
                outcome = await file_remediation(
                    self._client, identity, dedupe=self._dedupe, dry_run=self._dry_run
                )
                self._remediations[identity] = outcome
                return outcome

        if previous.status in ("filed", "duplicate"):
            return RemediationOutcome(status="duplicate", issue_url=previous.issue_url)
        return previous

    async def scan(self, root: Path) -> BatchSummary:
        """Check every dependency under *root*; one failure never stops the batch."""
        summary = BatchSummary(root=root)
        package_dirs = discover_dependencies(root, summary.dropped)
        log.info("audit.discovered", root=str(root), count=len(package_dirs))

        records: list[DependencyRecord] = []
        for package_dir in package_dirs:
            try:
                records.append(self.load(package_dir))
            except ManifestUnreadableError as exc:
                log.warning("audit.manifest_unreadable", path=exc.path, error=exc.reason)
                summary.dropped.append((package_dir, exc.reason))

        async def _run_one(record: DependencyRecord) -> DependencyRecord:
            try:
                return await self.check_remote(record)
            except Exception as exc:
                log.exception("audit.dependency_failed", package=record.name)
                record.errors.append(str(exc) or repr(exc))
                record.verdict = "unknown"
                record.state = "settled"
                return record

        summary.records = list(await asyncio.gather(*(_run_one(r) for r in records)))
        log.info(
            "audit.done",
            checked=len(summary.records),
            compliant=len(summary.compliant),
            non_compliant=len(summary.non_compliant),
            unknown=len(summary.unknown),
            dropped=len(summary.dropped),
        )
        return summary


def _package_name(package_dir: Path) -> str:
    if package_dir.parent.name.startswith("@"):
        return f"{package_dir.parent.name}/{package_dir.name}"
    return package_dir.name


async def scan(
    root: Path,
    client: GitHubClient,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    dedupe: bool = True,
    dry_run: bool = False,
) -> BatchSummary:
    """Scan a dependency root with an existing client."""
    scanner = WhitelistScanner(
        client, max_concurrency=max_concurrency, dedupe=dedupe, dry_run=dry_run
    )
    return await scanner.scan(root)


async def audit(
    config: AuditConfig,
    *,
    cwd: Path | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BatchSummary:
    """Audit ``./node_modules``; a missing directory is a silent no-op."""
    root = (cwd or Path.cwd()) / DEPENDENCY_ROOT
    if not root.is_dir():
        log.info("audit.no_dependency_root", root=str(root))
        return BatchSummary(root=root)

    async with GitHubClient(config.token, base_url=config.api_url, transport=transport) as client:
        return await scan(
            root,
            client,
            max_concurrency=config.max_concurrency,
            dedupe=config.dedupe,
            dry_run=config.dry_run,
        )
