from __future__ import annotations
import logging
import re


REDACT_PATTERNS = [
    re.compile(r"(sk-(?:ant-)?[A-Za-z0-9_\-]{20,})"),  # OpenAI / Anthropic keys
    re.compile(r"(AIza[0-9A-Za-z_\-]{20,})"),  # Google keys
    re.compile(r"(?<=[?&]key=)[^&\s\"']+"),  # Google-style ?key= query parameter
    re.compile(r"(?<=Bearer )[A-Za-z0-9._\-]+"),
]


def redact(value: str) -> str:
    redacted = value
    for pat in REDACT_PATTERNS:
        redacted = pat.sub("***", redacted)
    return redacted


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        # Render args first so secrets passed as %s parameters are scrubbed too
        if record.args:
            record.msg = record.getMessage()
            record.args = None
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        formatted = super().format(record)
        # exc_text is cached by super().format, redact the final output as well
        return redact(formatted)


def setup_logging(level: int | str = logging.INFO) -> None:
    logger = logging.getLogger()
    logger.setLevel(level)
    # Clear existing handlers in reload scenarios
    logger.handlers.clear()

    handler = logging.StreamHandler()
    formatter = RedactingFormatter(
        fmt="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)

    # httpx logs every request line at INFO, including Google's ?key= URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.error").setLevel(level)
    logging.getLogger("uvicorn.access").setLevel(level)
