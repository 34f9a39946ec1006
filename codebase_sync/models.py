from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Literal, Optional, Protocol, Set, Union

FileStatus = Literal["ingested", "skipped", "failed"]
Metadata = Dict[str, Union[str, int]]


@dataclass(frozen=True)
class LocalFile:
    """A regular file discovered under the sync root."""
    path: str
    absolute_path: Path
    size_bytes: int
    extension: str


@dataclass(frozen=True)
class RemoteRecord:
    """One row of the embeddings table, keyed by `file_path`."""
    file_path: str
    content: str
    embedding: List[float]
    metadata: Metadata

    def to_row(self) -> Dict[str, object]:
        return {
            "file_path": self.file_path,
            "content": self.content,
            "embedding": list(self.embedding),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class FileResult:
    """Outcome of ingesting a single file."""
    path: str
    status: FileStatus
    error: Optional[str] = None


@dataclass(frozen=True)
class SyncPlan:
    local: List[LocalFile]
    remote_paths: Set[str]
    to_add: Set[str]
    to_update: Set[str]
    to_delete: Set[str]


@dataclass
class SyncSummary:
    plan: SyncPlan
    deleted: int = 0
    delete_error: Optional[str] = None
    results: List[FileResult] = field(default_factory=list)

    def _count(self, status: FileStatus) -> int:
        return sum(1 for r in self.results if r.status == status)

    @property
    def ingested(self) -> int:
        return self._count("ingested")

    @property
    def skipped(self) -> int:
        return self._count("skipped")

    @property
    def failed(self) -> int:
        return self._count("failed")

    @property
    def failures(self) -> List[FileResult]:
        return [r for r in self.results if r.status == "failed"]

    @property
    def ok(self) -> bool:
        return self.delete_error is None and self.failed == 0


class RecordStore(Protocol):
    def fetch_paths(self) -> Set[str]: ...

    def delete_paths(self, paths: Iterable[str]) -> int: ...

    def upsert(self, record: RemoteRecord) -> None: ...


class Embedder(Protocol):
    def embed(self, text: str) -> List[float]: ...
