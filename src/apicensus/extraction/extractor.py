"""Two-tier route extraction for one controller file.

:func:`extract` tries the structured strategy first and, if the file does
not parse, runs the pattern-based strategy instead. The outcome is a tagged
:class:`~apicensus.models.ExtractionResult`; results of the two strategies
are never merged for the same file.
"""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Optional

from apicensus.exceptions import ExtractionError
from apicensus.extraction.fallback import extract_fallback
from apicensus.extraction.paths import to_posix
from apicensus.extraction.structured import extract_structured
from apicensus.models import ExtractionResult, ExtractionStrategy


def extract(
    file_contents: str,
    relative_path: str,
    controller_name: Optional[str] = None,
) -> ExtractionResult:
    """Extract the routes declared in one Java file.

    Args:
        file_contents: Source text of the file.
        relative_path: Path relative to the source root; backslashes are
            normalised to ``/``.
        controller_name: Name shown in the report (defaults to the file
            name).

    Returns:
        ``PARSED`` with the structured endpoints, ``FALLBACK`` with the
        pattern-based endpoints when the structured parse failed (``error``
        holds the reason), or ``FAILED`` with no endpoints if even the
        fallback could not run.
    """
    relative = to_posix(relative_path)
    name = controller_name or PurePosixPath(relative).name

    try:
        endpoints = extract_structured(file_contents, relative, name)
    except ExtractionError as exc:
        reason = str(exc)
    else:
        return ExtractionResult(strategy=ExtractionStrategy.PARSED, endpoints=endpoints)

    try:
        endpoints = extract_fallback(file_contents, relative, name)
    except (ValueError, IndexError, RecursionError) as exc:
        return ExtractionResult(
            strategy=ExtractionStrategy.FAILED,
            error=f"{reason}; pattern fallback failed: {exc}",
        )
    return ExtractionResult(
        strategy=ExtractionStrategy.FALLBACK,
        endpoints=endpoints,
        error=reason,
    )
