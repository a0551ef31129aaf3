from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Set levels for the `cinema` logger tree.

    Notes:
    - Uvicorn already configures handlers; this function mainly sets levels for our package.
    - `cinema.audit` carries one record per successful workflow action; route it to a
      dedicated handler to keep an audit trail.
    - Set `CINEMA_LOG_LEVEL=DEBUG` (or INFO/WARNING/ERROR) to control verbosity.
    """

    normalized = level.upper()
    logging.getLogger("cinema").setLevel(normalized)
    # Ensure child loggers under cinema.* inherit this level.
    logging.getLogger("cinema").propagate = True
