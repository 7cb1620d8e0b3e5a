"""Log filter to suppress duplicate package-load error lines from console output.

When a package fails to load, the loader logs the failure via
``logger.error()`` and also records it in ``LoadResult.errors``, which the CLI
renders as a Rich panel. This filter, when attached to the console handler
only, suppresses those known duplicate patterns so the user sees just the panel.

Log file handlers are unaffected; all records are preserved for debugging.
"""

import logging


class PackageErrorLogFilter(logging.Filter):
    """Suppress package-load failure records from the console handler.

    Drops ERROR-level records that start with:
    - ``Failed to load package`` (third-party package failure)
    - ``Failed to load builtin package`` (builtin failure, fallback follows)

    Everything else passes through unchanged.
    """

    _SUPPRESSED_PREFIXES = (
        "Failed to load package",
        "Failed to load builtin package",
    )

    def filter(self, record: logging.LogRecord) -> bool:
        """Return False to suppress the record, True to let it through."""
        if record.levelno != logging.ERROR:
            return True

        message = record.getMessage()
        return not message.startswith(self._SUPPRESSED_PREFIXES)
