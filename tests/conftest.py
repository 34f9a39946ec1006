"""
Shared fixtures: a sample project tree plus in-memory stand-ins for the
Supabase table and the embedding service.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Set

import pytest

from codebase_sync.config import SyncConfig
from codebase_sync.errors import RemoteDeleteError, RemoteQueryError
from codebase_sync.models import RemoteRecord


class FakeStore:
    """Dict-backed embeddings table that records every call."""

    def __init__(
        self,
        rows: Optional[Dict[str, RemoteRecord]] = None,
        fail_fetch: bool = False,
        fail_delete: bool = False,
        reject_upserts: Iterable[str] = (),
    ):
        self.rows: Dict[str, RemoteRecord] = dict(rows or {})
        self.fail_fetch = fail_fetch
        self.fail_delete = fail_delete
        self.reject_upserts = set(reject_upserts)
        self.fetch_calls = 0
        self.delete_calls: List[List[str]] = []
        self.upsert_calls: List[str] = []

    def fetch_paths(self) -> Set[str]:
        self.fetch_calls += 1
        if self.fail_fetch:
            raise RemoteQueryError("select failed")
        return set(self.rows)

    def delete_paths(self, paths) -> int:
        paths = list(paths)
        self.delete_calls.append(paths)
        if self.fail_delete:
            raise RemoteDeleteError("delete failed")
        for p in paths:
            self.rows.pop(p, None)
        return len(paths)

    def upsert(self, record: RemoteRecord) -> None:
        self.upsert_calls.append(record.file_path)
        if record.file_path in self.reject_upserts:
            raise RuntimeError(f"upsert rejected for {record.file_path}")
        self.rows[record.file_path] = record


class FakeEmbedder:
    """Deterministic embedder; raises for any text listed in `fail_on`."""

    def __init__(self, fail_on: Iterable[str] = ()):
        self.fail_on = set(fail_on)
        self.calls: List[str] = []

    def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise RuntimeError("embedding service unavailable")
        return [float(len(text)), 0.5, -0.5]


def stub_record(path: str) -> RemoteRecord:
    return RemoteRecord(file_path=path, content="old", embedding=[0.0], metadata={})


@pytest.fixture()
def project(tmp_path: Path) -> Path:
    """A small tree covering ignore rules, built-in excludes and empty files."""
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "build").mkdir()
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / ".git").mkdir()

    (root / ".gitignore").write_text("# build output\nbuild/\n\n*.log\n")
    (root / "a.py").write_text("print('a')\n")
    (root / "src" / "b.md").write_text("# B\n\nNotes about b.\n")
    (root / "build" / "out.txt").write_text("artifact")
    (root / "debug.log").write_text("log line")
    (root / "empty.txt").write_text("")
    (root / "blank.txt").write_text("   \n\t\n")
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1;")
    (root / ".git" / "HEAD").write_text("ref: refs/heads/main\n")
    return root


@pytest.fixture()
def config(project: Path) -> SyncConfig:
    return SyncConfig(
        supabase_url="https://example.supabase.co",
        supabase_key="service-role-key",
        openai_api_key="sk-test",
        root=project,
    )


@pytest.fixture()
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture()
def embedder() -> FakeEmbedder:
    return FakeEmbedder()
