from typing import Iterable


class SyncError(Exception):
    """Base class for every error raised by the sync pipeline."""


class ConfigError(SyncError):
    """A required setting is missing. Raised before any I/O."""

    def __init__(self, missing: Iterable[str]):
        self.missing = list(missing)
        super().__init__(
            "Missing environment variables: "
            + ", ".join(self.missing)
            + ". Set them in the environment or in a .env file."
        )


class RemoteQueryError(SyncError):
    """The set of stored paths could not be fetched. Aborts the run."""


class RemoteDeleteError(SyncError):
    """Stale records could not be deleted. The run continues."""


class FileProcessingError(SyncError):
    """Reading, embedding or upserting a single file failed."""

    def __init__(self, path: str, stage: str, cause: BaseException):
        self.path = path
        self.stage = stage
        self.cause = cause
        super().__init__(f"{stage} failed for {path}: {cause}")
