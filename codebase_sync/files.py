"""Local file discovery with gitignore-style exclusions.

Patterns from the project ignore file are normalised before use: a pattern
with a leading ``/`` stays anchored to the root, every other pattern is
prefixed with ``**/`` so it applies at any depth. Matching itself uses
pathspec's gitignore semantics, so ``build/`` excludes the directory and
everything under it.
"""

import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

import pathspec

from codebase_sync.models import LocalFile

logger = logging.getLogger(__name__)

BUILTIN_EXCLUDES = (
    "**/.git/",
    "**/node_modules/",
    "**/.DS_Store",
)


def load_ignore_patterns(ignore_path: Path) -> List[str]:
    """
    Read raw patterns from an ignore file, dropping blanks and comments.
    A missing or unreadable file yields no patterns.
    """
    if not ignore_path.is_file():
        logger.debug("No ignore file at %s", ignore_path)
        return []

    try:
        text = ignore_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Could not read %s: %s", ignore_path, e)
        return []

    patterns: List[str] = []
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        patterns.append(stripped)
    logger.debug("Loaded %d ignore patterns from %s", len(patterns), ignore_path)
    return patterns


def normalize_pattern(pattern: str) -> str:
    negate = pattern.startswith("!")
    body = pattern[1:] if negate else pattern
    if not body.startswith("/") and not body.startswith("**/"):
        body = f"**/{body}"
    return f"!{body}" if negate else body


def build_exclusion_spec(patterns: Iterable[str]) -> pathspec.GitIgnoreSpec:
    lines = list(BUILTIN_EXCLUDES) + [normalize_pattern(p) for p in patterns]
    return pathspec.GitIgnoreSpec.from_lines(lines)


def resolve_local_files(root: Path, ignore_file: Optional[str] = ".gitignore") -> List[LocalFile]:
    """
    Walk `root` and return every non-empty regular file not excluded by the
    built-in rules or the project's ignore file. Paths are root-relative and
    use forward slashes.
    """
    root = Path(root)
    if not root.is_dir():
        raise NotADirectoryError(f"Sync root '{root}' does not exist or is not a directory.")

    patterns = load_ignore_patterns(root / ignore_file) if ignore_file else []
    spec = build_exclusion_spec(patterns)

    found: List[LocalFile] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root)

        kept_dirs = []
        for name in sorted(dirnames):
            rel = (rel_dir / name).as_posix()
            if spec.match_file(f"{rel}/"):
                logger.debug("Excluding directory %s", rel)
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        for name in sorted(filenames):
            rel = (rel_dir / name).as_posix()
            if spec.match_file(rel):
                continue
            abs_path = Path(dirpath) / name
            if not abs_path.is_file():
                continue
            size = abs_path.stat().st_size
            if size == 0:
                continue
            found.append(
                LocalFile(
                    path=rel,
                    absolute_path=abs_path.resolve(),
                    size_bytes=size,
                    extension=abs_path.suffix,
                )
            )
    return found
