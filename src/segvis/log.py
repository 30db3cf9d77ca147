"""Console logging for the segvis command line and embedding applications."""

import logging
from collections.abc import Iterable, Sequence

from rich.logging import RichHandler

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
RICH_FORMAT = "%(name)s: %(message)s"

# The HTTP stack logs every request at DEBUG/INFO; only show it when debugging segvis itself.
NOISY_LOGGERS = ("urllib3", "requests")


def configure_logging(
    level: int = logging.INFO,
    *,
    handlers: Sequence[logging.Handler] | None = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
    datefmt: str = "[%X]",
) -> list[logging.Handler]:
    """Route segvis logs (``raw``, ``api``, ``channel0.ChannelActor``...) to the console.

    Without explicit handlers a RichHandler is installed; its own columns carry
    time and level, so records only show the logger name and message. Loggers
    named in ``quiet`` are held at WARNING unless ``level`` is DEBUG.

    Returns the handlers installed on the root logger.
    """
    if handlers is None:
        installed: list[logging.Handler] = [RichHandler(rich_tracebacks=True, markup=False)]
        fmt = RICH_FORMAT
    else:
        installed = list(handlers)
        fmt = PLAIN_FORMAT

    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, handlers=installed, force=True)

    quiet_level = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    for name in quiet:
        logging.getLogger(name).setLevel(quiet_level)
    return installed
