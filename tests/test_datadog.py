import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from urllib.parse import parse_qs, urlsplit

import pytest

from garagemetrics.datadog import Datadog, marshal_datadog


def test_marshal_localhost_is_dev():
    doc = json.loads(marshal_datadog({"host": "localhost", "alloc": 20}))
    assert doc == {
        "series": [
            {
                "metric": "dev.alloc",
                "points": [["$currenttime", 20]],
                "type": "gauge",
                "host": "localhost",
                "tags": ["environment:dev"],
            }
        ]
    }


def test_marshal_other_host_is_prod():
    doc = json.loads(marshal_datadog({"host": "web1", "goroutines": 7.5}))
    (entry,) = doc["series"]
    assert entry["metric"] == "prod.goroutines"
    assert entry["host"] == "web1"
    assert entry["tags"] == ["environment:prod"]
    assert entry["points"] == [["$currenttime", 7.5]]


def test_marshal_missing_host_is_unknown():
    doc = json.loads(marshal_datadog({"count": 3}))
    assert doc["series"][0]["host"] == "unknown"
    assert doc["series"][0]["metric"] == "prod.count"


def test_marshal_skips_non_numeric():
    data = {"host": "localhost", "a": 1, "b": "text", "c": True, "d": {"x": 1}, "e": [1]}
    doc = json.loads(marshal_datadog(data))
    assert [entry["metric"] for entry in doc["series"]] == ["dev.a"]


def test_marshal_without_numbers_has_null_series():
    assert json.loads(marshal_datadog({"host": "localhost"})) == {"series": None}


def test_marshal_integral_float_has_no_fraction():
    out = marshal_datadog({"host": "localhost", "alloc": 20.0})
    assert b'["$currenttime",20]' in out


def test_marshal_nan_rejected():
    with pytest.raises(ValueError):
        marshal_datadog({"bad": float("nan")})


@pytest.fixture
def endpoint(request):
    status = getattr(request, "param", 202)
    received = []

    class Handler(BaseHTTPRequestHandler):
        def do_POST(self):
            length = int(self.headers.get("Content-Length", 0))
            received.append((self.path, self.rfile.read(length)))
            self.send_response(status)
            self.send_header("Content-Length", "0")
            self.end_headers()

        def log_message(self, *args):
            pass

    server = HTTPServer(("127.0.0.1", 0), Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    host, port = server.server_address[:2]
    yield f"http://{host}:{port}/api/v1/series", received
    server.shutdown()
    server.server_close()


def test_publish_posts_document(endpoint, caplog):
    url, received = endpoint
    caplog.set_level(logging.INFO)
    data = {"host": "localhost", "alloc": 20}
    Datadog(api_key="placeholder", host=url, timeout=5).publish(data)

    (path, body), = received
    parts = urlsplit(path)
    assert parts.path == "/api/v1/series"
    assert parse_qs(parts.query) == {"api_key": ["placeholder"]}
    assert body == marshal_datadog(data)
    assert "published" in caplog.text


@pytest.mark.parametrize("endpoint", [500, 200], indirect=True)
def test_publish_rejected_status_is_logged(endpoint, caplog):
    url, received = endpoint
    caplog.set_level(logging.INFO)
    Datadog(api_key="placeholder", host=url, timeout=5).publish({"n": 1})
    assert len(received) == 1
    assert "status[" in caplog.text
    assert "published" not in caplog.text


def test_publish_unreachable_host_is_logged(caplog):
    caplog.set_level(logging.INFO)
    Datadog(api_key="placeholder", host="http://127.0.0.1:9/x", timeout=2).publish({"n": 1})
    assert any(record.levelno == logging.ERROR for record in caplog.records)
    assert "published" not in caplog.text