"""Recent commit history of a controller file, read through ``git log``."""

from __future__ import annotations

import subprocess
from pathlib import Path

from apicensus.exceptions import HistoryLookupError
from apicensus.extraction.paths import to_posix
from apicensus.models import PLACEHOLDER_COMMIT, CommitEntry
from apicensus.output import debug

GIT_TIMEOUT_SECONDS = 30
_LOG_FORMAT = "--pretty=format:%as|%an|%s"


class GitHistory:
    """Looks up the last few commits touching a file.

    Args:
        git_bin: Git executable (name on ``PATH`` or absolute path).
        repo_root: Working directory for every ``git`` invocation.
        timeout: Seconds before a single invocation is abandoned.
    """

    def __init__(
        self,
        git_bin: str = "git",
        repo_root: str | Path = ".",
        timeout: float = GIT_TIMEOUT_SECONDS,
    ) -> None:
        self.git_bin = git_bin or "git"
        self.repo_root = Path(repo_root)
        self.timeout = timeout

    def lookup(self, relative_path: str, count: int = 3) -> list[CommitEntry]:
        """Return exactly *count* entries for *relative_path*.

        The real commits come first, oldest of the recent ones at position 0;
        the remaining positions hold :data:`~apicensus.models.PLACEHOLDER_COMMIT`.
        A failed ``git`` invocation yields placeholders only.
        """
        if count <= 0:
            return []
        try:
            output = self._run_git(to_posix(relative_path), count)
        except HistoryLookupError as exc:
            debug(f"History lookup failed for {relative_path}: {exc}")
            return [PLACEHOLDER_COMMIT] * count

        lines = [line for line in output.splitlines() if line.strip()]
        entries = [_parse_line(line) for line in reversed(lines[:count])]
        return entries + [PLACEHOLDER_COMMIT] * (count - len(entries))

    def _run_git(self, relative_path: str, count: int) -> str:
        args = [self.git_bin, "log", f"-{count}", _LOG_FORMAT, "--", relative_path]
        try:
            result = subprocess.run(
                args,
                cwd=str(self.repo_root),
                capture_output=True,
                text=True,
                encoding="utf-8",
                errors="replace",
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise HistoryLookupError(
                f"git log timed out after {self.timeout:g}s"
            ) from exc
        except OSError as exc:
            raise HistoryLookupError(f"Cannot run {self.git_bin}: {exc}") from exc

        if result.returncode != 0:
            detail = (result.stderr or "").strip().splitlines()
            reason = detail[0] if detail else f"exit status {result.returncode}"
            raise HistoryLookupError(f"git log failed: {reason}")
        return result.stdout or ""


def _parse_line(line: str) -> CommitEntry:
    """Split ``date|author|subject``; the subject may itself contain ``|``."""
    parts = line.split("|", 2)
    if len(parts) < 3:
        return CommitEntry(date=parts[0].strip() or "-", subject=line.strip())
    return CommitEntry(date=parts[0], author=parts[1], subject=parts[2])
