from __future__ import annotations
import logging, logging.handlers, sys
import structlog
from .paths import get_dirs

# HTTP client libraries log every request at DEBUG/INFO
_NOISY = ("urllib3", "httpx", "httpcore")


def setup_logging(level: str = "INFO", *, pretty: bool = False):
    """
    JSON lines into the rotating catdl.log; stderr gets the same JSON for the
    server, or coloured key=value lines when `pretty` (CLI).
    """
    level = level.upper()
    logfile = get_dirs()["logs"] / "catdl.log"

    shared = [
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    def formatter(renderer) -> structlog.stdlib.ProcessorFormatter:
        return structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=shared,
        )

    as_json = formatter(structlog.processors.JSONRenderer())

    rot = logging.handlers.RotatingFileHandler(
        logfile, maxBytes=10_000_000, backupCount=3, encoding="utf-8"
    )
    rot.setFormatter(as_json)
    # stderr, so tables on stdout stay clean
    stream = logging.StreamHandler(sys.stderr)
    stream.setFormatter(
        formatter(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())) if pretty else as_json
    )

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(rot)
    root.addHandler(stream)
    for name in _NOISY:
        logging.getLogger(name).setLevel(max(logging.WARNING, getattr(logging, level)))

    structlog.configure(
        processors=shared + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
    )
    return structlog.get_logger()
