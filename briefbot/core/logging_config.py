import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"

# attributes every LogRecord carries; anything else came in through extra={...}
_RESERVED = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


class ContextFormatter(logging.Formatter):
    """Appends the fields passed through extra={...} as key=value pairs after the event name."""

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = {k: v for k, v in vars(record).items() if k not in _RESERVED and not k.startswith("_")}
        if not context:
            return line
        fields = " ".join(f"{k}={v!r}" if isinstance(v, str) and " " in v else f"{k}={v}" for k, v in context.items())
        head, sep, tail = line.partition("\n")
        return f"{head} {fields}{sep}{tail}"


def configure_logging(level: str | int = "INFO") -> None:
    """Configure application-wide logging: a single stdout handler with timestamp, level, logger name and context fields.
    Safe to call more than once (existing root handlers are replaced)."""
    root = logging.getLogger()
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ContextFormatter(_FORMAT))
    root.addHandler(handler)
    root.setLevel(level.upper() if isinstance(level, str) else level)

    # quiet noisy libs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("pdfminer").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
