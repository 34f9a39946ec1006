from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Set

import typer
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from codebase_sync.config import DEFAULT_IGNORE_FILE, SyncConfig, load_config, load_env_file
from codebase_sync.errors import (
    ConfigError,
    FileProcessingError,
    RemoteDeleteError,
    RemoteQueryError,
)
from codebase_sync.files import resolve_local_files
from codebase_sync.models import (
    Embedder,
    FileResult,
    LocalFile,
    RecordStore,
    RemoteRecord,
    SyncPlan,
    SyncSummary,
)
from codebase_sync.openai import OpenAIEmbedder
from codebase_sync.supabase import SupabaseStore

app = typer.Typer(help="Keep a Supabase embeddings table in sync with a local file tree.")
console = Console()
logger = logging.getLogger(__name__)

ResultCallback = Callable[[FileResult], None]


# --------------------------- Reconciliation ---------------------------

def reconcile(local_paths: Set[str], remote_paths: Set[str]) -> Set[str]:
    """Paths stored remotely that no longer exist locally."""
    return set(remote_paths) - set(local_paths)


def plan_sync(local_files: List[LocalFile], remote_paths: Set[str]) -> SyncPlan:
    """
    Classify local files as additions or updates and find stale remote paths.
    """
    local_paths = {f.path for f in local_files}
    return SyncPlan(
        local=list(local_files),
        remote_paths=set(remote_paths),
        to_add=local_paths - remote_paths,
        to_update=local_paths & remote_paths,
        to_delete=reconcile(local_paths, remote_paths),
    )


def delete_stale(store: RecordStore, paths: Iterable[str]) -> int:
    """
    Delete stale paths from the store. An empty set never reaches the store.
    """
    paths = sorted(paths)
    if not paths:
        return 0
    return store.delete_paths(paths)


# --------------------------- Ingestion ---------------------------

def ingest_file(local_file: LocalFile, store: RecordStore, embedder: Embedder) -> FileResult:
    """
    Read, embed and upsert one file. Never raises: any failure comes back
    as a `failed` result. Blank and binary files are `skipped`.
    """
    stage = "read"
    try:
        raw = local_file.absolute_path.read_bytes()
        # NUL bytes mark binary content; Postgres text columns reject them
        if b"\x00" in raw:
            logger.debug("Skipping binary file %s", local_file.path)
            return FileResult(local_file.path, "skipped")
        content = raw.decode("utf-8", errors="replace")
        if not content.strip():
            return FileResult(local_file.path, "skipped")

        size = local_file.absolute_path.stat().st_size
        metadata = {
            "file_extension": local_file.extension,
            "file_size_bytes": size,
        }

        stage = "embed"
        embedding = embedder.embed(content)

        stage = "upsert"
        store.upsert(
            RemoteRecord(
                file_path=local_file.path,
                content=content,
                embedding=embedding,
                metadata=metadata,
            )
        )
    except Exception as e:
        err = FileProcessingError(local_file.path, stage, e)
        logger.error("%s", err)
        return FileResult(local_file.path, "failed", str(err))

    return FileResult(local_file.path, "ingested")


def ingest_files(
    files: Iterable[LocalFile],
    store: RecordStore,
    embedder: Embedder,
    concurrency: int = 1,
    on_result: Optional[ResultCallback] = None,
) -> List[FileResult]:
    """
    Ingest every file, one at a time or with a bounded thread pool.
    Results are returned in input order.
    """
    def work(local_file: LocalFile) -> FileResult:
        result = ingest_file(local_file, store, embedder)
        if on_result is not None:
            on_result(result)
        return result

    files = list(files)
    if concurrency <= 1:
        return [work(f) for f in files]

    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        return list(pool.map(work, files))


# --------------------------- High-level Workflows ---------------------------

def sync_codebase(
    config: SyncConfig,
    store: RecordStore,
    embedder: Embedder,
    on_result: Optional[ResultCallback] = None,
) -> SyncSummary:
    """
    End-to-end sync: resolve, fetch, delete stale, upsert all, then drop
    records for files that turned out blank or binary.
    Raises RemoteQueryError before any mutation if the remote set is unknown.
    """
    local_files = resolve_local_files(config.root, config.ignore_file)
    remote_paths = store.fetch_paths()
    plan = plan_sync(local_files, remote_paths)
    summary = SyncSummary(plan=plan)

    _delete_into(summary, store, plan.to_delete)

    summary.results = ingest_files(
        plan.local, store, embedder, concurrency=config.concurrency, on_result=on_result
    )

    skipped = {r.path for r in summary.results if r.status == "skipped"}
    _delete_into(summary, store, skipped & plan.remote_paths)
    return summary


def _delete_into(summary: SyncSummary, store: RecordStore, paths: Set[str]) -> None:
    try:
        summary.deleted += delete_stale(store, paths)
    except RemoteDeleteError as e:
        logger.warning("Continuing without deleting stale records: %s", e)
        if summary.delete_error is None:
            summary.delete_error = str(e)


def build_store(config: SyncConfig) -> SupabaseStore:
    return SupabaseStore.from_config(config)


def build_embedder(config: SyncConfig) -> OpenAIEmbedder:
    return OpenAIEmbedder.from_config(config)


# --------------------------- CLI Commands ---------------------------

@app.command()
def sync(
    root: Path = typer.Option(
        Path("."), exists=True, file_okay=False, dir_okay=True, readable=True, help="Root of the tree to sync.",
    ),
    ignore_file: str = typer.Option(DEFAULT_IGNORE_FILE, help="Ignore file, relative to the root."),
    table: Optional[str] = typer.Option(None, help="Embeddings table name."),
    model: Optional[str] = typer.Option(None, help="Embedding model identifier."),
    concurrency: int = typer.Option(1, min=1, help="Files to process in parallel."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """
    Delete stale records and re-embed every local file.
    """
    _setup_logging(verbose)
    config = _config_or_exit(
        root=root, ignore_file=ignore_file, table=table, embedding_model=model, concurrency=concurrency,
    )
    store = build_store(config)
    embedder = build_embedder(config)

    console.rule("[bold]Syncing Embeddings")
    try:
        summary = sync_codebase(config, store, embedder, on_result=_print_result)
    except RemoteQueryError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2)

    _print_summary(summary)
    if not summary.ok:
        raise typer.Exit(code=1)


@app.command()
def plan(
    root: Path = typer.Option(
        Path("."), exists=True, file_okay=False, dir_okay=True, readable=True, help="Root of the tree to sync.",
    ),
    ignore_file: str = typer.Option(DEFAULT_IGNORE_FILE, help="Ignore file, relative to the root."),
    table: Optional[str] = typer.Option(None, help="Embeddings table name."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
) -> None:
    """
    Show what a sync would add, update and delete, without changing anything.
    """
    _setup_logging(verbose)
    config = _config_or_exit(root=root, ignore_file=ignore_file, table=table, require_openai=False)
    store = build_store(config)

    local_files = resolve_local_files(config.root, config.ignore_file)
    try:
        remote_paths = store.fetch_paths()
    except RemoteQueryError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2)

    sync_plan = plan_sync(local_files, remote_paths)

    table_out = Table(title="Sync Plan", box=box.SIMPLE)
    table_out.add_column("Change")
    table_out.add_column("Count", justify="right")
    table_out.add_row("Add", str(len(sync_plan.to_add)))
    table_out.add_row("Update", str(len(sync_plan.to_update)))
    table_out.add_row("Delete", str(len(sync_plan.to_delete)))
    console.print(table_out)

    for path in sorted(sync_plan.to_delete):
        console.print(f"[red]- {escape(path)}[/red]")
    for path in sorted(sync_plan.to_add):
        console.print(f"[green]+ {escape(path)}[/green]")


# --------------------------- Utilities ---------------------------

def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )
    # SDK request logs drown out per-file progress
    for name in ("httpx", "httpcore", "openai"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _config_or_exit(**kwargs) -> SyncConfig:
    load_env_file()
    try:
        return load_config(**kwargs)
    except ConfigError as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(code=2)


def _print_result(result: FileResult) -> None:
    path = escape(result.path)
    if result.status == "ingested":
        console.print(f"[green]Ingested[/green] {path}")
    elif result.status == "skipped":
        console.print(f"[dim]Skipped {path} (blank or binary)[/dim]")
    else:
        console.print(f"[red]Failed[/red] {path}")


def _print_summary(summary: SyncSummary) -> None:
    table = Table(title="Sync Summary", box=box.SIMPLE)
    table.add_column("Deleted", justify="right")
    table.add_column("Ingested", justify="right")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_row(str(summary.deleted), str(summary.ingested), str(summary.skipped), str(summary.failed))
    console.print(table)

    if summary.delete_error:
        console.print(f"[yellow]Stale records were not deleted:[/yellow] {escape(summary.delete_error)}")
    for failure in summary.failures:
        console.print(f"[red]{escape(failure.error or failure.path)}[/red]")
    console.print("Embedding generation and ingestion complete.")


# --------------------------- Entrypoint ---------------------------

def main() -> None:
    app()


if __name__ == "__main__":
    main()
