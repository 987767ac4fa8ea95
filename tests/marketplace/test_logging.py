import structlog

from marketplace.utils.logging import bind_request, clear_request, level_for


def test_level_follows_environment():
    assert level_for("production") == "INFO"
    assert level_for("Development") == "DEBUG"
    assert level_for("test") == "WARNING"
    assert level_for("unknown") == "INFO"


def test_explicit_level_wins():
    assert level_for("production", "debug") == "DEBUG"


def test_request_context_replaces_previous_request():
    bind_request(request_id="r-1", path="/cart")
    bind_request(request_id="r-2", method="GET")

    assert structlog.contextvars.get_contextvars() == {"request_id": "r-2", "method": "GET"}

    clear_request()
    assert structlog.contextvars.get_contextvars() == {}
