"""Tests for structured logging."""

import json
import logging
import sys

from directupload.core.logging import CloudLoggingFormatter, upload_token_context


def _record(msg="hello", level=logging.INFO, exc_info=None, **extra):
    record = logging.LogRecord("directupload.test", level, __file__, 10, msg, None, exc_info)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_formats_single_line_json():
    """Test records render as one JSON object per line."""
    output = CloudLoggingFormatter().format(_record("Upload verified"))

    assert "\n" not in output
    entry = json.loads(output)
    assert entry["severity"] == "INFO"
    assert entry["message"] == "Upload verified"
    assert entry["logger"] == "directupload.test"


def test_includes_extra_fields_and_token():
    """Test extra fields and the request's upload token are attached."""
    reset = upload_token_context.set("tok-123")
    try:
        output = CloudLoggingFormatter().format(_record(object_key="a/b.jpg", http_status=409))
    finally:
        upload_token_context.reset(reset)

    entry = json.loads(output)
    assert entry["upload_token"] == "tok-123"
    assert entry["object_key"] == "a/b.jpg"
    assert entry["http_status"] == 409


def test_includes_exception():
    """Test exceptions are embedded as strings."""
    try:
        raise RuntimeError("bucket unreachable")
    except RuntimeError:
        record = _record("Sweep run failed", level=logging.ERROR, exc_info=sys.exc_info())

    entry = json.loads(CloudLoggingFormatter().format(record))

    assert entry["severity"] == "ERROR"
    assert entry["exception_type"] == "RuntimeError"
    assert entry["exception_message"] == "bucket unreachable"
    assert "Traceback" in entry["exception"]
