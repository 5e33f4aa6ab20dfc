import pytest

from rtcbridge.handlers import HandlerRegistry, UnsupportedSchemeError


def test_get_producer_calls_handler_with_url():
    registry = HandlerRegistry()
    registry.register("rtsp", lambda url: ("producer", url))
    assert registry.get_producer("rtsp://localhost:8554/cam") == (
        "producer",
        "rtsp://localhost:8554/cam",
    )
    assert registry.has_producer("rtsp://localhost:8554/cam") is True


def test_unsupported_scheme():
    registry = HandlerRegistry()
    registry.register("rtsp", lambda url: url)
    with pytest.raises(UnsupportedSchemeError, match="unsupported scheme: rtmp://host/app"):
        registry.get_producer("rtmp://host/app")


@pytest.mark.parametrize("url", ["noscheme", ":rtsp", ""])
def test_url_without_scheme(url):
    registry = HandlerRegistry()
    registry.register("", lambda u: u)
    assert registry.get_handler(url) is None
    assert registry.has_producer(url) is False


def test_scheme_matched_exactly_and_reregistered():
    registry = HandlerRegistry()
    registry.register("rtsp", lambda url: "first")
    registry.register("rtsps", lambda url: "secure")
    assert registry.get_producer("rtsps://cam") == "secure"
    registry.register("rtsp", lambda url: "second")
    assert registry.get_producer("rtsp://cam") == "second"
    assert registry.has_producer("rtspx://cam") is False