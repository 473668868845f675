"""Shared fixtures for filesentinel tests (no network access).

GitHub is replaced by an in-memory fake served through ``httpx.MockTransport``.
"""

from __future__ import annotations

import base64
import json
import re

import httpx
import pytest

_CONTENTS_RE = re.compile(r"^/repos/([^/]+/[^/]+)/contents/(.+)$")
_ISSUES_RE = re.compile(r"^/repos/([^/]+/[^/]+)/issues$")
_SEARCH_REPO_RE = re.compile(r"\brepo:(\S+)")


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


class FakeGitHub:
    """Minimal stand-in for the contents, issues and issue search endpoints."""

    def __init__(self) -> None:
        self.files: dict[tuple[str, str], str] = {}
        self.failures: dict[str, int] = {}
        self.moved: dict[str, str] = {}
        self.issues: dict[str, list[dict]] = {}
        self.post_status = 201
        self.posted: list[tuple[str, dict]] = []
        self.requests: list[httpx.Request] = []

    def add_file(self, repo: str, path: str, text: str) -> None:
        self.files[(repo, path)] = text

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        m = _CONTENTS_RE.match(path)
        if m:
            repo, file_path = m.groups()
            if repo in self.moved:
                location = f"https://api.github.com/repos/{self.moved[repo]}/contents/{file_path}"
                return httpx.Response(301, headers={"Location": location})
            if repo in self.failures:
                return httpx.Response(self.failures[repo], json={"message": "nope"})
            text = self.files.get((repo, file_path))
            if text is None:
                return httpx.Response(404, json={"message": "Not Found"})
            return httpx.Response(200, json=contents_body(text))

        if path == "/search/issues":
            m = _SEARCH_REPO_RE.search(request.url.params.get("q", ""))
            items = self.issues.get(m.group(1), []) if m else []
            return httpx.Response(200, json={"total_count": len(items), "items": items})

        m = _ISSUES_RE.match(path)
        if m:
            repo = m.group(1)
            payload = json.loads(request.content)
            self.posted.append((repo, payload))
            if self.post_status >= 300:
                return httpx.Response(self.post_status, json={"message": "rejected"})
            number = len(self.posted)
            return httpx.Response(
                self.post_status,
                json={"number": number, "html_url": f"https://github.com/{repo}/issues/{number}"},
            )

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


def contents_body(text: str) -> dict:
    """A contents API response body for a file holding *text*."""
    return {
        "type": "file",
        "encoding": "base64",
        "content": base64.b64encode(text.encode("utf-8")).decode("ascii"),
    }


@pytest.fixture
def fake_github():
    return FakeGitHub()


@pytest.fixture
def make_package(tmp_path):
    """Write ``node_modules/<name>/package.json`` under tmp_path."""
    root = tmp_path / "node_modules"
    root.mkdir(exist_ok=True)

    def _make(name: str, manifest: dict | str | None) -> None:
        pkg_dir = root / name
        pkg_dir.mkdir(parents=True)
        if manifest is None:
            return
        text = manifest if isinstance(manifest, str) else json.dumps(manifest)
        (pkg_dir / "package.json").write_text(text, encoding="utf-8")

    return _make
