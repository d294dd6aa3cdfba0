"""Builds the endpoint inventory of a Java source tree.

Each controller file found by
:func:`~apicensus.extraction.discovery.discover_controller_files` is one
task on a thread pool: read the file, look up its recent commits, extract
its routes and attach the history to every endpoint. A file that cannot be
read or extracted is logged and contributes nothing; the run goes on.
"""

from __future__ import annotations

import os
import threading
from collections import Counter
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Optional

from apicensus.extraction import discover_controller_files, extract
from apicensus.history import GitHistory
from apicensus.models import (
    EndpointRecord,
    ExtractionResult,
    ExtractionStrategy,
    Inventory,
    RepositoryConfig,
)
from apicensus.output import error, info, progress, warning


def build_inventory(
    config: RepositoryConfig,
    *,
    history: Optional[GitHistory] = None,
    max_workers: Optional[int] = None,
) -> Inventory:
    """Scan ``config.root_path`` and return every declared endpoint.

    Args:
        config: Repository settings (root, git binary, history depth,
            controller markers).
        history: History lookup to use; defaults to a :class:`GitHistory`
            rooted at the source root.
        max_workers: Pool size; defaults to ``os.cpu_count()``.

    Returns:
        An :class:`~apicensus.models.Inventory` with the endpoints sorted by
        path, the number of controller files and per-strategy file counts.

    Raises:
        SourceTreeError: If the source root is missing or cannot be walked.
    """
    root = Path(config.root_path)
    files = discover_controller_files(root, config.controller_markers)
    info(f"Found {len(files)} controller files under {root}")

    if history is None:
        history = GitHistory(config.git_bin, root)
    workers = max_workers or os.cpu_count() or 1

    endpoints: list[EndpointRecord] = []
    strategies: Counter[str] = Counter()
    done = 0
    lock = threading.Lock()

    def _task(path: Path) -> ExtractionResult:
        nonlocal done
        relative = path.relative_to(root).as_posix()
        contents = path.read_text(encoding="utf-8", errors="replace")
        commits = history.lookup(relative, config.history_depth)
        result = extract(contents, relative, path.name)

        latest = next((c for c in reversed(commits) if not c.is_placeholder), None)
        latest_text = f"{latest.date} | {latest.author}" if latest else "none"
        tag = "[Found-Regex]" if result.strategy is ExtractionStrategy.FALLBACK else "[Found]"
        with lock:
            done += 1
            progress(f"[{done}/{len(files)}] {relative} (latest commit: {latest_text})")
            if result.strategy is ExtractionStrategy.FALLBACK:
                warning(f"{relative}: structured parse failed ({result.error}); used pattern fallback")
            for endpoint in result.endpoints:
                progress(f"  {tag} {endpoint.path}")

        result.endpoints = [e.with_history(commits) for e in result.endpoints]
        return result

    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = {pool.submit(_task, path): path for path in files}
        for future in as_completed(futures):
            path = futures[future]
            try:
                result = future.result()
            except (OSError, ValueError) as exc:
                error(f"Failed to process {path}: {exc}")
                strategies[ExtractionStrategy.FAILED.value] += 1
                continue
            strategies[result.strategy.value] += 1
            if result.strategy is ExtractionStrategy.FAILED:
                error(f"Failed to extract {path}: {result.error}")
                continue
            endpoints.extend(result.endpoints)

    endpoints.sort(key=lambda e: (e.path, e.source_file, e.handler_name))
    return Inventory(
        endpoints=endpoints,
        file_count=len(files),
        strategy_counts=dict(strategies),
    )
