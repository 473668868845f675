"""CLI entry point: filesentinel.

Subcommands:
    filesentinel audit                 # audit ./node_modules, file issues upstream
    filesentinel audit --dry-run       # report only, never file issues
    filesentinel audit --json          # machine-readable summary on stdout
"""

from __future__ import annotations

import asyncio
import json
import sys

import click

from filesentinel.core.config import AuditConfig
from filesentinel.core.exceptions import ConfigError
from filesentinel.core.logging import setup_logging
from filesentinel.engines.whitelist_audit.models import EXIT_FATAL, BatchSummary
from filesentinel.engines.whitelist_audit.scanner import audit

_VERDICT_LABELS = {
    "compliant": "ok",
    "non_compliant": "MISSING",
    "unknown": "unknown",
}


def _print_summary(summary: BatchSummary) -> None:
    if not summary.records and not summary.dropped:
        click.echo(f"No dependencies found under {summary.root}.")
        return

    click.echo(f"Checked {len(summary.records)} dependencies under {summary.root}\n")
    for record in summary.records:
        label = _VERDICT_LABELS[record.verdict]
        repo = f"  -> {record.identity}" if record.identity else "  (no GitHub repository)"
        line = f"  [{label:>7}] {record.name}{repo}"
        if record.remediation is not None:
            line += f"  issue: {record.remediation.status}"
            if record.remediation.issue_url:
                line += f" {record.remediation.issue_url}"
        click.echo(line)
        for error in record.errors:
            click.echo(f"            ! {error}")

    for path, reason in summary.dropped:
        click.echo(f"  [skipped] {path.name}  ! {reason}")

    click.echo(
        f"\n{len(summary.compliant)} compliant, {len(summary.non_compliant)} missing a whitelist, "
        f"{len(summary.unknown)} unknown, {len(summary.dropped)} skipped."
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
def main(verbose: bool) -> None:
    """filesentinel: check installed npm packages for a publish-file whitelist."""
    setup_logging("DEBUG" if verbose else None)


@main.command("audit")
@click.option("--token", default=None, help="GitHub API token (default: $GITHUB_TOKEN)")
@click.option("--dry-run", is_flag=True, help="Never file remediation issues")
@click.option("--no-dedupe", is_flag=True, help="File even when an equivalent issue is already open")
@click.option("--concurrency", type=int, default=None, help="Dependencies checked in parallel")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def audit_cmd(
    token: str | None,
    dry_run: bool,
    no_dedupe: bool,
    concurrency: int | None,
    as_json: bool,
) -> None:
    """Audit ./node_modules and file issues for packages without a whitelist."""
    try:
        config = AuditConfig.from_env(
            token=token,
            dry_run=True if dry_run else None,
            dedupe=False if no_dedupe else None,
            max_concurrency=concurrency,
        )
    except ConfigError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FATAL)

    summary = asyncio.run(audit(config))

    if as_json:
        click.echo(json.dumps(summary.to_dict(), indent=2))
    else:
        _print_summary(summary)
    sys.exit(summary.exit_code)


if __name__ == "__main__":
    main()
