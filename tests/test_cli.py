"""CLI tests using typer's CliRunner with the remote clients swapped out."""

import pytest
from typer.testing import CliRunner

from codebase_sync import main

from conftest import FakeEmbedder, FakeStore, stub_record

runner = CliRunner()


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SUPABASE_URL", "https://example.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-role-key")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.delenv("EMBEDDINGS_TABLE", raising=False)
    monkeypatch.delenv("EMBEDDING_MODEL", raising=False)


def _use(monkeypatch, store, embedder=None):
    monkeypatch.setattr(main, "build_store", lambda config: store)
    monkeypatch.setattr(main, "build_embedder", lambda config: embedder or FakeEmbedder())


def test_sync_success(monkeypatch, project):
    store = FakeStore(rows={"gone.md": stub_record("gone.md")})
    _use(monkeypatch, store)

    result = runner.invoke(main.app, ["sync", "--root", str(project)])

    assert result.exit_code == 0, result.output
    assert "Sync Summary" in result.output
    assert "Embedding generation and ingestion complete." in result.output
    assert set(store.rows) == {".gitignore", "a.py", "src/b.md"}


def test_sync_partial_failure_exits_nonzero(monkeypatch, project):
    store = FakeStore(reject_upserts=["a.py"])
    _use(monkeypatch, store)

    result = runner.invoke(main.app, ["sync", "--root", str(project)])

    assert result.exit_code == 1
    assert "src/b.md" in store.rows
    assert "Embedding generation and ingestion complete." in result.output


def test_sync_fetch_failure_exits_before_mutation(monkeypatch, project):
    store = FakeStore(fail_fetch=True)
    embedder = FakeEmbedder()
    _use(monkeypatch, store, embedder)

    result = runner.invoke(main.app, ["sync", "--root", str(project)])

    assert result.exit_code == 2
    assert store.upsert_calls == []
    assert embedder.calls == []


def test_sync_missing_config(monkeypatch, project):
    monkeypatch.delenv("OPENAI_API_KEY")
    store = FakeStore()
    _use(monkeypatch, store)

    result = runner.invoke(main.app, ["sync", "--root", str(project)])

    assert result.exit_code == 2
    assert "OPENAI_API_KEY" in result.output
    assert store.fetch_calls == 0


def test_plan_does_not_mutate(monkeypatch, project):
    monkeypatch.delenv("OPENAI_API_KEY")
    store = FakeStore(rows={"a.py": stub_record("a.py"), "gone.md": stub_record("gone.md")})
    _use(monkeypatch, store)

    result = runner.invoke(main.app, ["plan", "--root", str(project)])

    assert result.exit_code == 0, result.output
    assert "Sync Plan" in result.output
    assert "- gone.md" in result.output
    assert "+ src/b.md" in result.output
    assert store.delete_calls == []
    assert store.upsert_calls == []
