from __future__ import annotations

import logging

from petchat.core.logging import RedactingFormatter, redact


def _format(msg: str, *args) -> str:
    record = logging.LogRecord("petchat", logging.INFO, __file__, 1, msg, args, None)
    return RedactingFormatter("%(message)s").format(record)


def test_redacts_vendor_keys() -> None:
    assert redact("key sk-ant-REDACTED") == "key ***"
    assert redact("AIzaSyA1234567890abcdefghijk") == "***"
    assert redact("Authorization: Bearer abc.def-ghi") == "Authorization: Bearer ***"


def test_redacts_query_key_in_urls() -> None:
    url = "https://generativelanguage.googleapis.com/v1beta/models/x:streamGenerateContent?key=secret123&alt=sse"
    assert redact(url).endswith("?key=***&alt=sse")


def test_formatter_redacts_args() -> None:
    out = _format("calling %s", "https://example.com/v1?key=abc")
    assert out == "calling https://example.com/v1?key=***"


def test_formatter_leaves_plain_messages() -> None:
    assert _format("Switched to %s (model=%s)", "Ollama (local)", "gemma3:4b") == "Switched to Ollama (local) (model=gemma3:4b)"
