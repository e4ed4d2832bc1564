"""Logging setup for applications that embed the connector.

Every module logs through ``logging.getLogger("s3connector.<area>")`` and
never configures handlers itself; ``setup_logging`` is for the host
application to call once at startup.
"""

import json
import logging
from logging.config import dictConfig

# Their DEBUG output would drown the connector's own per-request lines.
QUIET_LOGGERS = ("boto3", "botocore", "urllib3")


def setup_logging(level: str = "INFO", *, json_lines: bool = True) -> None:
    """Send log records to stderr, as JSON lines or as plain text.

    Third-party AWS and HTTP loggers are held at WARNING whatever
    ``level`` is.
    """
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": JsonFormatter},
                "plain": {
                    "format": "%(asctime)s %(levelname)s %(name)s [%(threadName)s] %(message)s",
                },
            },
            "handlers": {
                "stderr": {
                    "class": "logging.StreamHandler",
                    "formatter": "json" if json_lines else "plain",
                },
            },
            "root": {"level": level, "handlers": ["stderr"]},
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
        }
    )


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    The thread name is included because multipart parts may be uploaded
    from a worker pool.
    """

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)
