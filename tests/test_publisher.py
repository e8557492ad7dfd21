import json
import logging
import threading
import time

from garagemetrics.publisher import Publish, Stdout


class _FakeCollector:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.calls = 0

    def collect(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.data


def _wait_for(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def test_publish_delivers_to_every_publisher():
    data = {"goroutines": 4}
    first, second = [], []
    pub = Publish(_FakeCollector(data), 0.01, first.append, second.append)
    try:
        assert _wait_for(lambda: first and second)
    finally:
        pub.stop()
    assert first[0] == data
    assert second[0] == data


def test_stop_ends_the_thread():
    received = []
    pub = Publish(_FakeCollector({"a": 1}), 0.01, received.append)
    assert _wait_for(lambda: received)
    pub.stop()
    count = len(received)
    time.sleep(0.05)
    assert len(received) == count


def test_nothing_published_before_first_interval():
    received = []
    with Publish(_FakeCollector({"a": 1}), 60.0, received.append):
        time.sleep(0.05)
    assert received == []


def test_collect_error_is_logged_and_skipped(caplog):
    received = []
    collector = _FakeCollector(error=RuntimeError("collector down"))
    with caplog.at_level(logging.ERROR, logger="garagemetrics.publisher"):
        pub = Publish(collector, 0.01, received.append)
        try:
            assert _wait_for(lambda: collector.calls >= 2)
        finally:
            pub.stop()
    assert received == []
    assert any("collector down" in r.getMessage() for r in caplog.records)


def test_stdout_lifts_heap_and_drops_keys(caplog):
    data = {"memstats": {"Alloc": 42, "Sys": 9}, "cmdline": ["svc"], "goroutines": 3}
    with caplog.at_level(logging.INFO, logger="garagemetrics.publisher"):
        out = Stdout().publish(data)
    assert json.loads(out) == {"goroutines": 3, "heap": 42}
    assert "memstats" in data
    assert any(out in r.getMessage() for r in caplog.records)


def test_stdout_without_memstats_has_no_heap():
    out = Stdout().publish({"goroutines": 3, "cmdline": []})
    assert json.loads(out) == {"goroutines": 3}


def test_stdout_output_has_sorted_keys():
    out = Stdout().publish({"b": 1, "a": 2, "c": 3})
    assert list(json.loads(out)) == ["a", "b", "c"]


def test_stdout_escapes_html_characters():
    out = Stdout().publish({"tag": "<a&b>"})
    assert "<" not in out and "&" not in out
    assert "\\u003c" in out
    assert json.loads(out) == {"tag": "<a&b>"}


def test_stdout_unserialisable_data_logs_error(caplog):
    with caplog.at_level(logging.ERROR, logger="garagemetrics.publisher"):
        out = Stdout().publish({"lock": threading.Lock()})
    assert out is None
    assert any(r.levelno == logging.ERROR for r in caplog.records)