# pyright: reportUnknownParameterType=false, reportUnknownMemberType=false
import threading
from unittest.mock import Mock, patch

import pytest
import requests

from reqtrack.networking.transport import RequestsTransport
from reqtrack.networking.types import OutgoingRequest, combine_urls


def _mock_response(*, status: int = 200, url: str = "http://example.com"):
    response = Mock()
    response.status_code = status
    response.url = url
    response.headers = {"Content-Type": "application/json"}
    return response


@pytest.fixture
def transport():
    return RequestsTransport()


@pytest.mark.parametrize(
    ("base_url", "url", "expected"),
    [
        (None, "/items/1", "/items/1"),
        ("https://api.example.com", "/items/1", "https://api.example.com/items/1"),
        ("https://api.example.com/", "items/1", "https://api.example.com/items/1"),
        ("https://api.example.com/v1/", "/items", "https://api.example.com/v1/items"),
        ("https://api.example.com", "https://other.example/x", "https://other.example/x"),
        ("https://api.example.com", "//cdn.example/x", "//cdn.example/x"),
        ("https://api.example.com", "", "https://api.example.com"),
    ],
)
def test_combine_urls(base_url, url, expected):
    assert combine_urls(base_url, url) == expected


def test_timeout_seconds_treats_zero_as_no_timeout():
    assert OutgoingRequest("GET", "/x", timeout_ms=0).timeout_seconds is None
    assert OutgoingRequest("GET", "/x", timeout_ms=1500).timeout_seconds == 1.5


@patch("requests.Session.request")
def test_execute_passes_request_fields_through(mock_request, transport):
    response = _mock_response()
    mock_request.return_value = response
    request = OutgoingRequest(
        "GET",
        "/items/1",
        headers={"X-Test": "yes"},
        params={"q": "a"},
        base_url="https://api.example.com",
        timeout_ms=2500,
        auth=("user", "secret"),
        proxies={"https": "http://proxy:3128"},
        verify_tls=False,
    )

    result = transport.execute(request)

    assert result is response
    mock_request.assert_called_once_with(
        "GET",
        "https://api.example.com/items/1",
        headers={"X-Test": "yes"},
        params={"q": "a"},
        timeout=2.5,
        auth=("user", "secret"),
        proxies={"https": "http://proxy:3128"},
        allow_redirects=True,
        verify=False,
    )
    response.raise_for_status.assert_called_once_with()


@patch("requests.Session.request")
def test_execute_sends_mappings_as_json(mock_request, transport):
    mock_request.return_value = _mock_response(status=201)

    transport.execute(OutgoingRequest("POST", "http://e.x/items", body={"name": "x"}))

    assert mock_request.call_args.kwargs["json"] == {"name": "x"}
    assert "data" not in mock_request.call_args.kwargs


@pytest.mark.parametrize("body", ["raw text", b"raw bytes"])
@patch("requests.Session.request")
def test_execute_sends_text_and_bytes_raw(mock_request, body, transport):
    mock_request.return_value = _mock_response()

    transport.execute(OutgoingRequest("PUT", "http://e.x/items/1", body=body))

    assert mock_request.call_args.kwargs["data"] == body
    assert "json" not in mock_request.call_args.kwargs


@patch("requests.Session.request")
def test_execute_without_body_sends_neither_data_nor_json(mock_request, transport):
    mock_request.return_value = _mock_response()

    transport.execute(OutgoingRequest("DELETE", "http://e.x/items/1"))

    assert "data" not in mock_request.call_args.kwargs
    assert "json" not in mock_request.call_args.kwargs


@patch("requests.Session.request")
def test_zero_max_redirects_disables_redirects(mock_request, transport):
    mock_request.return_value = _mock_response(status=302)

    transport.execute(OutgoingRequest("GET", "http://e.x/", max_redirects=0))

    assert mock_request.call_args.kwargs["allow_redirects"] is False


@patch("requests.Session.request", autospec=True)
def test_max_redirects_uses_dedicated_session(mock_request):
    session = requests.Session()
    session.headers["X-Session"] = "main"
    transport = RequestsTransport(session)
    mock_request.return_value = _mock_response()

    transport.execute(OutgoingRequest("GET", "http://e.x/", max_redirects=3))
    limited = mock_request.call_args.args[0]
    assert limited is not session
    assert limited.max_redirects == 3
    assert limited.headers["X-Session"] == "main"
    assert mock_request.call_args.kwargs["allow_redirects"] is True

    transport.execute(OutgoingRequest("GET", "http://e.x/", max_redirects=3))
    assert mock_request.call_args.args[0] is limited

    transport.execute(OutgoingRequest("GET", "http://e.x/"))
    assert mock_request.call_args.args[0] is session
    assert session.max_redirects == requests.models.DEFAULT_REDIRECT_LIMIT


def test_concurrent_redirect_limits_do_not_leak():
    transport = RequestsTransport()
    first_started = threading.Event()
    release_first = threading.Event()
    seen = {}

    def fake_request(session, method, url, **kwargs):
        if url.endswith("/a"):
            first_started.set()
            release_first.wait(timeout=5)
        seen[url[-1]] = session.max_redirects
        return _mock_response()

    with patch(
        "requests.Session.request", autospec=True, side_effect=fake_request
    ):
        worker = threading.Thread(
            target=transport.execute,
            args=(OutgoingRequest("GET", "http://e.x/a", max_redirects=1),),
        )
        worker.start()
        assert first_started.wait(timeout=5)
        transport.execute(
            OutgoingRequest("GET", "http://e.x/b", max_redirects=20)
        )
        release_first.set()
        worker.join(timeout=5)

    assert seen == {"a": 1, "b": 20}


@patch("requests.Session.close", autospec=True)
@patch("requests.Session.request", autospec=True)
def test_close_closes_redirect_limited_sessions(mock_request, mock_close):
    session = requests.Session()
    transport = RequestsTransport(session)
    mock_request.return_value = _mock_response()
    transport.execute(OutgoingRequest("GET", "http://e.x/", max_redirects=5))
    limited = mock_request.call_args.args[0]

    transport.close()

    closed = [call.args[0] for call in mock_close.call_args_list]
    assert limited in closed
    assert session in closed


@patch("requests.Session.request")
def test_raise_for_status_can_be_disabled(mock_request, transport):
    response = _mock_response(status=500)
    mock_request.return_value = response

    result = transport.execute(
        OutgoingRequest("GET", "http://e.x/", raise_for_status=False)
    )

    assert result is response
    response.raise_for_status.assert_not_called()


@patch("requests.Session.request")
def test_transport_errors_propagate_unchanged(mock_request, transport):
    error = requests.exceptions.ConnectionError("refused")
    mock_request.side_effect = error

    with pytest.raises(requests.exceptions.ConnectionError) as excinfo:
        transport.execute(OutgoingRequest("GET", "http://e.x/"))

    assert excinfo.value is error


def test_close_closes_session():
    session = Mock(spec=requests.Session)

    with RequestsTransport(session):
        pass

    session.close.assert_called_once_with()
