"""GitHub repository identity utilities."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

_IDENTITY_RE = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


def resolve_identity(manifest: Mapping[str, Any]) -> str | None:
    """Derive the canonical ``owner/name`` from a manifest's ``repository`` field.

    ``repository`` may be a string or an object carrying ``url``.  Returns
    None when the field is absent, has an unexpected shape, or does not point
    at a GitHub repository.  Never raises.
    """
    if not isinstance(manifest, Mapping) or "repository" not in manifest:
        return None

    repository = manifest["repository"]
    if isinstance(repository, str):
        raw = repository
    elif isinstance(repository, Mapping):
        raw = repository.get("url")
        if not isinstance(raw, str):
            return None
    else:
        return None

    return _extract_owner_repo(raw)


def _extract_owner_repo(repo_url: str) -> str | None:
    """Extract 'owner/repo' from a repository reference.

    Handles:
      - git+https://github.com/owner/repo.git
      - https://github.com/owner/repo
      - git@github.com:owner/repo.git
      - github:owner/repo
      - owner/repo  (npm shorthand)
    """
    repo_url = repo_url.strip().rstrip("/")
    if repo_url.endswith(".git"):
        repo_url = repo_url[:-4]

    # Everything up to and including the last host marker goes.
    for marker in ("github.com/", "github.com:"):
        idx = repo_url.rfind(marker)
        if idx != -1:
            repo_url = repo_url[idx + len(marker) :]
            break
    else:
        if repo_url.startswith("github:"):
            repo_url = repo_url[len("github:") :]

    repo_url = repo_url.rstrip("/")
    if not _IDENTITY_RE.match(repo_url):
        return None
    return repo_url
