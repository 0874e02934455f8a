"""Tests for the tagged run log."""

import json
import threading

from rollout_e2e.runlog import LogSink, RunLog


def test_records_structured_fields(sink):
    log = RunLog("monitor", sink, echo=False)
    log.info("sample", ready=3, total=4)

    record = sink.records[0]
    assert record["level"] == "info"
    assert record["tag"] == "monitor"
    assert record["message"] == "sample"
    assert (record["ready"], record["total"]) == (3, 4)
    assert "timestamp" in record


def test_child_shares_sink(sink):
    parent = RunLog("suite", sink, echo=False)
    parent.child("RU-001").warn("slow")
    parent.error("boom")

    grouped = sink.by_tag()
    assert [r["message"] for r in grouped["RU-001"]] == ["slow"]
    assert [r["message"] for r in grouped["suite"]] == ["boom"]


def test_debug_recorded_but_not_echoed(capsys):
    sink = LogSink()
    log = RunLog("t", sink)
    log.debug("hidden")
    log.info("shown")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "shown" in out
    assert len(sink.records) == 2


def test_debug_echoed_when_enabled(capsys):
    RunLog("t", debug=True).debug("per-pod line")
    assert "per-pod line" in capsys.readouterr().out


def test_level_prefix(capsys):
    RunLog("t").warn("careful")
    assert "[WARN]" in capsys.readouterr().out


def test_write_suite_log(sink, tmp_path):
    log = RunLog("suite", sink, echo=False)
    log.info("one")
    log.child("pdb").info("two")

    path = sink.write_suite_log(str(tmp_path))
    with open(path) as f:
        payload = json.load(f)

    assert path.startswith(str(tmp_path))
    assert "test_suite_log_" in path
    assert set(payload["logs_by_tags"]) == {"suite", "pdb"}
    assert payload["test_timestamp"]


def test_sink_thread_safe(sink):
    log = RunLog("t", sink, echo=False)
    threads = [threading.Thread(target=lambda: [log.info("x") for _ in range(100)]) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(sink.records) == 400
