"""Exception hierarchy for apicensus.

All exceptions inherit from :class:`ApicensusError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`apicensus.exit_codes`.
Only :class:`ConfigurationError`, :class:`SourceTreeError` and
:class:`ReportError` ever reach the top-level handler in
:func:`apicensus.app.main`; the others are raised and handled inside their
unit of work (one file, one request, one history lookup) so that a single
failure never aborts the run.

Subclass hierarchy::

    ApicensusError (exit 1)
    +-- ConfigurationError      (exit 2)
    +-- SourceTreeError         (exit 3)
    +-- ExtractionError         (exit 1)
    +-- CollectionRequestError  (exit 4)
    +-- HistoryLookupError      (exit 1)
    +-- ReportError             (exit 5)
    +-- UsageTableFrozenError   (exit 1)
"""

from apicensus.exit_codes import (
    EXIT_COLLECTION_ERROR,
    EXIT_CONFIGURATION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_REPORT_ERROR,
    EXIT_SOURCE_TREE_ERROR,
)


class ApicensusError(Exception):
    """Base exception for all apicensus errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`apicensus.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(ApicensusError):
    """Raised for missing or invalid settings (dates, URL, config file)."""

    exit_code = EXIT_CONFIGURATION_ERROR


class SourceTreeError(ApicensusError):
    """Raised when the source root cannot be enumerated. Fatal for the run."""

    exit_code = EXIT_SOURCE_TREE_ERROR


class ExtractionError(ApicensusError):
    """Raised when a controller cannot be parsed structurally.

    Caught by :func:`~apicensus.extraction.extract`, which then switches
    to the pattern-based strategy for that file.
    """


class CollectionRequestError(ApicensusError):
    """Raised on network, timeout, bad-status or malformed-body failures.

    Caught per (segment, filter) task by the usage collector.
    """

    exit_code = EXIT_COLLECTION_ERROR


class HistoryLookupError(ApicensusError):
    """Raised when the version-control tool cannot be invoked."""


class ReportError(ApicensusError):
    """Raised when the workbook cannot be written."""

    exit_code = EXIT_REPORT_ERROR


class UsageTableFrozenError(ApicensusError):
    """Raised when counts are added to a table after collection finished."""
