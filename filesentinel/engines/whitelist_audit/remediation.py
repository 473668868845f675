"""Remediation filer — open an issue asking upstream to declare a file whitelist."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from filesentinel.engines.whitelist_audit.github_client import GitHubClient, RateLimitError
from filesentinel.engines.whitelist_audit.models import RemediationOutcome

log = structlog.get_logger("filesentinel.engine")

ISSUE_TITLE = "Limit the included files in the package published to npm"
ISSUE_MARKER = "<!-- filesentinel-remediation-marker: do-not-edit -->"


def build_issue_body() -> str:
    lines = [
        ISSUE_MARKER,
        "",
        "Seems that neither the `files` property is used in `package.json` to whitelist "
        "the included files, nor a `.npmignore` file is being used for blacklisting "
        "included files.",
        "",
        "Declaring either keeps tests, fixtures and other development files out of the "
        "published package.",
        "",
        "- https://docs.npmjs.com/cli/configuring-npm/package-json#files",
        "- https://docs.npmjs.com/cli/using-npm/developers#keeping-files-out-of-your-package",
    ]
    return "\n".join(lines) + "\n"


def _pick_existing_issue(issues: list[dict[str, Any]]) -> dict[str, Any] | None:
    """Choose an existing open issue based on marker or title match."""
    for issue in issues:
        if "pull_request" in issue:
            continue
        body = issue.get("body") or ""
        if ISSUE_MARKER in body:
            return issue
    for issue in issues:
        if "pull_request" in issue:
            continue
        if issue.get("title") == ISSUE_TITLE:
            return issue
    return None


async def _find_existing_issue(client: GitHubClient, identity: str) -> dict[str, Any] | None:
    # Search by exact title instead of listing issues, so busy repos are not truncated.
    query = f'repo:{identity} is:issue is:open in:title "{ISSUE_TITLE}"'
    result = await client.get("/search/issues", {"q": query})
    items = result.get("items") if isinstance(result, dict) else None
    return _pick_existing_issue(items or [])


async def file_remediation(
    client: GitHubClient,
    identity: str,
    *,
    dedupe: bool = True,
    dry_run: bool = False,
) -> RemediationOutcome:
    """Open the remediation issue on *identity* unless one is already open.

    Never raises; failures are logged and returned as ``failed``.  The POST
    itself is attempted once.
    """
    if dry_run:
        log.info("remediation.dry_run", repo=identity)
        return RemediationOutcome(status="skipped")

    try:
        if dedupe:
            existing = await _find_existing_issue(client, identity)
            if existing is not None:
                url = existing.get("html_url")
                log.info("remediation.duplicate", repo=identity, issue_url=url)
                return RemediationOutcome(status="duplicate", issue_url=url)

        created = await client.post(
            f"/repos/{identity}/issues",
            {"title": ISSUE_TITLE, "body": build_issue_body()},
        )
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        log.error("remediation.failed", repo=identity, status=status)
        return RemediationOutcome(status="failed", error=f"HTTP {status} filing issue")
    except (RateLimitError, httpx.TransportError, ValueError) as exc:
        log.error("remediation.failed", repo=identity, error=str(exc))
        return RemediationOutcome(status="failed", error=str(exc) or repr(exc))

    url = created.get("html_url") if isinstance(created, dict) else None
    log.info("remediation.filed", repo=identity, issue_url=url)
    return RemediationOutcome(status="filed", issue_url=url)
