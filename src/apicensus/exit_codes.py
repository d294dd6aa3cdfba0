"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~apicensus.exceptions.ApicensusError` subclass.
Schedulers and CI wrappers can inspect the exit code to decide whether a
run produced a report without parsing stderr.

Example::

    $ apicensus run --config apicensus.yaml
    $ echo $?
    3   # EXIT_SOURCE_TREE_ERROR -- the source root could not be walked
"""

EXIT_SUCCESS = 0
"""The run completed (possibly with isolated, logged failures)."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_CONFIGURATION_ERROR = 2
"""Required settings are missing or invalid."""

EXIT_SOURCE_TREE_ERROR = 3
"""The source tree could not be enumerated."""

EXIT_COLLECTION_ERROR = 4
"""A monitoring API request failed."""

EXIT_REPORT_ERROR = 5
"""The workbook or run log could not be written."""
