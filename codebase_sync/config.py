import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

from codebase_sync.errors import ConfigError

DEFAULT_TABLE = "codebase_embeddings"
DEFAULT_MODEL = "text-embedding-3-small"
DEFAULT_IGNORE_FILE = ".gitignore"

REQUIRED_VARS = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY", "OPENAI_API_KEY")


@dataclass(frozen=True)
class SyncConfig:
    """Settings for one sync run. Built once and passed to every component."""
    supabase_url: str
    supabase_key: str
    openai_api_key: str
    root: Path = Path(".")
    ignore_file: str = DEFAULT_IGNORE_FILE
    table: str = DEFAULT_TABLE
    embedding_model: str = DEFAULT_MODEL
    concurrency: int = 1


def load_env_file(root: Optional[Path] = None) -> bool:
    """
    Load a .env file from `root` (or the current directory) without
    overriding variables already set in the environment.
    """
    path = (root or Path.cwd()) / ".env"
    if not path.is_file():
        return False
    return load_dotenv(dotenv_path=path, override=False)


def load_config(
    env: Optional[Mapping[str, str]] = None,
    *,
    root: Path = Path("."),
    ignore_file: str = DEFAULT_IGNORE_FILE,
    table: Optional[str] = None,
    embedding_model: Optional[str] = None,
    concurrency: int = 1,
    require_openai: bool = True,
) -> SyncConfig:
    """
    Build a SyncConfig from environment variables.
    Raises ConfigError listing every missing required variable.
    """
    env = os.environ if env is None else env
    required = REQUIRED_VARS if require_openai else REQUIRED_VARS[:2]
    missing = [name for name in required if not env.get(name)]
    if missing:
        raise ConfigError(missing)
    if concurrency < 1:
        raise ValueError("concurrency must be at least 1")

    return SyncConfig(
        supabase_url=env["SUPABASE_URL"],
        supabase_key=env["SUPABASE_SERVICE_ROLE_KEY"],
        openai_api_key=env.get("OPENAI_API_KEY", ""),
        root=root,
        ignore_file=ignore_file,
        table=table or env.get("EMBEDDINGS_TABLE") or DEFAULT_TABLE,
        embedding_model=embedding_model or env.get("EMBEDDING_MODEL") or DEFAULT_MODEL,
        concurrency=concurrency,
    )
