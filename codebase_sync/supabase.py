import logging
from typing import Generator, Iterable, List, Optional, Set

from postgrest.types import ReturnMethod
from supabase import Client, create_client

from codebase_sync.config import SyncConfig
from codebase_sync.errors import RemoteDeleteError, RemoteQueryError
from codebase_sync.models import RemoteRecord

logger = logging.getLogger(__name__)


def get_client(config: SyncConfig) -> Client:
    """
    Create a Supabase client using the service role key.
    """
    return create_client(config.supabase_url, config.supabase_key)


class SupabaseStore:
    """The embeddings table, keyed by `file_path`."""

    def __init__(self, client: Client, table: str, page_size: int = 1000, delete_batch_size: int = 100):
        self.client = client
        self.table = table
        self.page_size = page_size
        self.delete_batch_size = delete_batch_size

    @classmethod
    def from_config(cls, config: SyncConfig, client: Optional[Client] = None) -> "SupabaseStore":
        return cls(client or get_client(config), config.table)

    def iter_paths(self) -> Generator[str, None, None]:
        """
        Page through the table and yield every stored `file_path`.
        """
        start = 0
        while True:
            end = start + self.page_size - 1
            resp = (
                self.client.table(self.table)
                .select("file_path")
                .order("file_path")
                .range(start, end)
                .execute()
            )
            rows = resp.data or []
            logger.debug("Fetched %d rows from %s [%d, %d]", len(rows), self.table, start, end)
            for row in rows:
                yield row["file_path"]
            if len(rows) < self.page_size:
                break
            start += self.page_size

    def fetch_paths(self) -> Set[str]:
        try:
            return set(self.iter_paths())
        except Exception as e:
            raise RemoteQueryError(f"Could not fetch file paths from {self.table}: {e}") from e

    def delete_paths(self, paths: Iterable[str]) -> int:
        """
        Delete the rows for `paths` in batches. Returns the number of paths sent.
        Never issues a delete for an empty list.
        """
        paths = list(paths)
        deleted = 0
        for batch in _batched(paths, self.delete_batch_size):
            try:
                self.client.table(self.table).delete().in_("file_path", batch).execute()
            except Exception as e:
                raise RemoteDeleteError(
                    f"Could not delete {len(batch)} rows from {self.table} "
                    f"({deleted} of {len(paths)} already deleted): {e}"
                ) from e
            deleted += len(batch)
            logger.debug("Deleted %d rows from %s", len(batch), self.table)
        return deleted

    def upsert(self, record: RemoteRecord) -> None:
        self.client.table(self.table).upsert(
            record.to_row(), on_conflict="file_path", returning=ReturnMethod.minimal
        ).execute()


def _batched(items: List[str], size: int) -> Generator[List[str], None, None]:
    for i in range(0, len(items), size):
        yield items[i:i + size]
