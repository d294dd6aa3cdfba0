"""Controller file discovery.

Walks a Java source root and selects the ``.java`` files whose relative
path contains a controller marker (``Controller`` by default, plus the
common ``Conrtoller`` misspelling). ``.gitignore`` rules at the root are
honoured via :mod:`pathspec`, and build/VCS directories are always pruned.
"""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path

import pathspec

from apicensus.exceptions import SourceTreeError

DEFAULT_MARKERS = ("Controller", "Conrtoller")

# Directories that should always be pruned during traversal.
_ALWAYS_SKIP = frozenset(
    {".git", ".svn", ".idea", ".gradle", "target", "build", "node_modules"}
)


def _load_gitignore(root: Path) -> pathspec.PathSpec | None:
    """Load ``.gitignore`` from *root* if it exists, returning a PathSpec matcher."""
    gitignore = root / ".gitignore"
    if not gitignore.is_file():
        return None
    lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    return pathspec.PathSpec.from_lines("gitignore", lines)


def discover_controller_files(
    root: str | Path,
    markers: Sequence[str] = DEFAULT_MARKERS,
) -> list[Path]:
    """Return the controller files under *root*, sorted.

    Args:
        root: Source root to walk.
        markers: Substrings of the relative path that mark a controller.

    Raises:
        SourceTreeError: If *root* is unset, missing, or cannot be walked.
    """
    if not str(root).strip():
        raise SourceTreeError("repository.root_path is not set")
    root_path = Path(root)
    if not root_path.is_dir():
        raise SourceTreeError(f"Source root does not exist or is not a directory: {root_path}")

    try:
        gitignore_spec = _load_gitignore(root_path)
    except OSError as exc:
        raise SourceTreeError(f"Cannot read .gitignore in {root_path}: {exc}") from exc

    def _on_error(exc: OSError) -> None:
        raise SourceTreeError(f"Cannot walk {exc.filename}: {exc.strerror}") from exc

    files: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(str(root_path), onerror=_on_error):
        rel_dir = os.path.relpath(dirpath, str(root_path))

        # Prune always-skip and ignored directories in place.
        dirnames[:] = [
            d for d in dirnames
            if d not in _ALWAYS_SKIP
            and not (gitignore_spec and gitignore_spec.match_file(
                (os.path.join(rel_dir, d) if rel_dir != "." else d) + "/",
            ))
        ]

        for fname in filenames:
            if not fname.endswith(".java"):
                continue
            rel_path = os.path.join(rel_dir, fname) if rel_dir != "." else fname
            if gitignore_spec and gitignore_spec.match_file(rel_path):
                continue
            if not any(marker in rel_path for marker in markers):
                continue
            files.append(Path(dirpath) / fname)

    return sorted(files)
