import urllib.error
import urllib.request

import pytest

from garagemetrics.prometheus import CONTENT_TYPE, Exporter, deep_copy_map, render_metrics


def test_deep_copy_converts_numbers_and_bools():
    source = {"count": 3, "ratio": 0.5, "up": True, "down": False}
    assert deep_copy_map(source) == {"count": 3.0, "ratio": 0.5, "up": 1.0, "down": 0.0}
    assert all(isinstance(v, float) for v in deep_copy_map(source).values())


def test_deep_copy_drops_unsupported_values():
    source = {"name": "svc", "args": ["a"], "nothing": None, "n": 1}
    assert deep_copy_map(source) == {"n": 1.0}


def test_deep_copy_is_independent_of_source():
    source = {"memstats": {"Alloc": 10}}
    copied = deep_copy_map(source)
    source["memstats"]["Alloc"] = 99
    assert copied == {"memstats": {"Alloc": 10.0}}


def test_deep_copy_of_none_is_empty():
    assert deep_copy_map(None) == {}


def test_render_flat_and_nested():
    text = render_metrics({"goroutines": 4.0, "memstats": {"Alloc": 2048.0}}, "")
    assert sorted(text.splitlines()) == ["goroutines 4", "memstats_Alloc 2048"]
    assert text.endswith("\n")


def test_render_with_prefix_and_discards_others():
    text = render_metrics({"a": 1.0, "skip": "x"}, "svc")
    assert text == "svc_a 1\n"


def test_render_rounds_without_decimals():
    lines = render_metrics({"x": 2.5, "y": 3.7}, "").splitlines()
    assert lines == ["x 2", "y 4"]


@pytest.fixture
def exporter():
    exp = Exporter("127.0.0.1:0", "/metrics", 5.0, 5.0, 5.0)
    yield exp
    exp.stop(1.0)


def _url(exp, path):
    host, port = exp.address
    return f"http://{host}:{port}{path}"


def test_exporter_serves_published_metrics(exporter):
    exporter.publish({"goroutines": 4, "up": True, "name": "svc"})
    with urllib.request.urlopen(_url(exporter, "/metrics"), timeout=5) as response:
        assert response.status == 200
        assert response.headers["Content-Type"] == CONTENT_TYPE
        body = response.read().decode()
    assert sorted(body.splitlines()) == ["goroutines 4", "up 1"]


def test_exporter_serves_empty_before_publish(exporter):
    with urllib.request.urlopen(_url(exporter, "/metrics"), timeout=5) as response:
        assert response.read() == b""


def test_exporter_unknown_route_is_404(exporter):
    with pytest.raises(urllib.error.HTTPError) as info:
        urllib.request.urlopen(_url(exporter, "/other"), timeout=5)
    assert info.value.code == 404


def test_exporter_stop_closes_server():
    exp = Exporter("127.0.0.1:0", "/metrics")
    url = _url(exp, "/metrics")
    exp.stop(1.0)
    exp.stop(1.0)
    with pytest.raises(urllib.error.URLError):
        urllib.request.urlopen(url, timeout=2)


def test_exporter_rejects_address_without_port():
    with pytest.raises(ValueError):
        Exporter("localhost", "/metrics")