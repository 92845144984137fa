import pytest
import requests

from print_agent.backend.api import AuthClient
from print_agent.core.errors import RegistrationError
from print_agent.core.models import Config, Printer, PrinterType


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        self._body = body
        self.text = text if text is not None else str(body)

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


class FakeSession:
    def __init__(self, response=None, exc=None):
        self.response = response
        self.exc = exc
        self.calls = []

    def _do(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if self.exc:
            raise self.exc
        return self.response

    def post(self, url, **kwargs):
        return self._do("POST", url, **kwargs)

    def get(self, url, **kwargs):
        return self._do("GET", url, **kwargs)


def _config() -> Config:
    return Config(api_key="secret", api_url="https://api.example.test/", tenant_id=4, restaurant_id=9)


def _printer() -> Printer:
    return Printer(ip="10.0.0.5", name="Kitchen", tenant_id=4, restaurant_id=9, type="thermal", raster_width=384)


def test_register_printer_returns_agent_key():
    session = FakeSession(FakeResponse(201, {"data": {"agent_key": "cred-123"}}))
    client = AuthClient(_config(), session=session)

    assert client.register_printer(_printer()) == "cred-123"

    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://api.example.test/api/printers")
    assert kwargs["headers"]["X-Api-Key"] == "secret"
    assert kwargs["timeout"] == 10
    body = kwargs["json"]
    assert body["ip"] == "10.0.0.5"
    assert body["tenantId"] == 4
    assert body["restaurantId"] == 9
    assert body["isEnabled"] is True
    assert body["size"] == 384
    assert body["type"] == "thermal"


@pytest.mark.parametrize(
    "response, message",
    [
        (FakeResponse(401, {"error": "bad key"}, text='{"error": "bad key"}'), "API Error 401"),
        (FakeResponse(200, {"data": {}}), "no agent_key"),
        (FakeResponse(200, {"data": {"agent_key": ""}}), "no agent_key"),
        (FakeResponse(200, None, text="<html>"), "invalid JSON"),
    ],
)
def test_register_printer_failures(response, message):
    client = AuthClient(_config(), session=FakeSession(response))
    with pytest.raises(RegistrationError) as exc:
        client.register_printer(_printer())
    assert message in str(exc.value)


def test_register_printer_transport_error():
    client = AuthClient(_config(), session=FakeSession(exc=requests.ConnectionError("no route")))
    with pytest.raises(RegistrationError):
        client.register_printer(_printer())


def test_fetch_printers_skips_invalid_records():
    body = {
        "data": {
            "printers": [
                {"ip": "10.0.0.8", "name": "Bar", "type": "LASER", "agent_key": "abc", "size": 0},
                {"name": "missing ip"},
            ]
        }
    }
    session = FakeSession(FakeResponse(200, body))
    printers = AuthClient(_config(), session=session).fetch_printers()

    assert session.calls[0][0] == "GET"
    assert [p.ip for p in printers] == ["10.0.0.8"]
    assert printers[0].kind is PrinterType.LASER
    assert printers[0].credential == "abc"


def test_fetch_printers_requires_data():
    client = AuthClient(_config(), session=FakeSession(FakeResponse(200, {"printers": []})))
    with pytest.raises(RegistrationError):
        client.fetch_printers()
