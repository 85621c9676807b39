from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

import pytest

from bridge_servers.cowork.conversation_log import (
    FROM_COWORK,
    TO_COWORK,
    ConversationLog,
    format_log_line,
)

LINE_RE = re.compile(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] (→ TO COWORK|← FROM COWORK): .+$")


def test_format_log_line() -> None:
    when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    assert format_log_line(TO_COWORK, "hello", when) == "[2026-01-02 03:04:05] → TO COWORK: hello\n"
    assert format_log_line(FROM_COWORK, "hi", when) == "[2026-01-02 03:04:05] ← FROM COWORK: hi\n"


def test_record_appends_lines(tmp_path) -> None:  # noqa: ANN001
    log = ConversationLog(tmp_path / "conversation.log")
    log.record(TO_COWORK, "question")
    log.record(FROM_COWORK, "answer")

    lines = (tmp_path / "conversation.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert all(LINE_RE.match(line) for line in lines)
    assert lines[0].endswith("→ TO COWORK: question")


def test_record_failure_is_swallowed(tmp_path) -> None:  # noqa: ANN001
    log = ConversationLog(tmp_path / "missing-dir" / "conversation.log")
    assert log.record(TO_COWORK, "lost") is None


def test_tail_defaults_and_limits(tmp_path) -> None:  # noqa: ANN001
    log = ConversationLog(tmp_path / "conversation.log")
    assert log.tail() == {"lines": [], "total": 0}

    for i in range(25):
        log.record(FROM_COWORK, f"m{i}")

    default = log.tail()
    assert default["total"] == 25
    assert len(default["lines"]) == 20
    assert default["lines"][-1].endswith("m24")

    assert [line[-2:] for line in log.tail(2)["lines"]] == ["23", "24"]
    assert len(log.tail(3)["lines"]) == 3
    assert len(log.tail(100)["lines"]) == 25
    assert log.size() > 0


def test_error_handler_journals_context(tmp_path) -> None:  # noqa: ANN001
    log = ConversationLog(tmp_path / "conversation.log")
    logger = logging.getLogger("cowork.bridge.test-journal")
    handler = log.error_handler()
    logger.addHandler(handler)
    try:
        logger.error("boom %s", 1, extra={"context": "fileWatcher read"})
        logger.warning("not journaled")
    finally:
        logger.removeHandler(handler)

    lines = (tmp_path / "conversation.log").read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert re.match(r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\] ERROR in fileWatcher read: boom 1$", lines[0])


@pytest.mark.parametrize("last", [0, -5])
def test_tail_rejects_non_positive_counts(tmp_path, last: int) -> None:  # noqa: ANN001
    log = ConversationLog(tmp_path / "conversation.log")
    with pytest.raises(ValueError, match="positive"):
        log.tail(last)


def test_unencodable_text_is_not_propagated(tmp_path) -> None:  # noqa: ANN001
    path = tmp_path / "conversation.log"
    log = ConversationLog(path)
    lone_surrogate = json.loads('"bad \\ud800 surrogate"')

    assert log.record(TO_COWORK, lone_surrogate) is None
    log.record_error("fileWatcher", lone_surrogate)

    log.record(FROM_COWORK, "still works")
    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert lines[0].endswith("← FROM COWORK: still works")
