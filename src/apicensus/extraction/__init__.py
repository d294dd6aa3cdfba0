"""Route extraction from Spring MVC controllers.

1. **Discovery** (:mod:`~apicensus.extraction.discovery`) -- walks the
   source root and selects controller files, respecting ``.gitignore``.

2. **Structured extraction** (:mod:`~apicensus.extraction.structured`) --
   parses each file with tree-sitter and reads the ``@RequestMapping``
   family of annotations from the syntax tree.

3. **Pattern fallback** (:mod:`~apicensus.extraction.fallback`) -- when a
   file does not parse, regular expressions recover what they can.

:func:`extract` ties 2 and 3 together and returns a tagged
:class:`~apicensus.models.ExtractionResult`. Paths from either strategy go
through :func:`~apicensus.extraction.paths.join_route`.
"""

from __future__ import annotations

from apicensus.extraction.discovery import discover_controller_files as discover_controller_files
from apicensus.extraction.extractor import extract as extract
from apicensus.extraction.paths import join_route as join_route, normalize_route as normalize_route
