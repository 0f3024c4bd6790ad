import pytest

from somnia_mcp.errors import ConfigurationError, ExplorerError
from somnia_mcp.explorer_client import ExplorerClient


class _Response:
    def __init__(self, payload, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        return None

    def json(self):
        return self._payload


def _explorer(monkeypatch, *payloads):
    client = ExplorerClient("https://explorer.invalid/api/", max_retries=2, backoff_seconds=0)
    queue = list(payloads)
    requests_seen = []

    def get(url, params=None, timeout=None):
        requests_seen.append(("GET", params))
        return _Response(queue.pop(0))

    def post(url, data=None, timeout=None):
        requests_seen.append(("POST", data))
        return _Response(queue.pop(0))

    monkeypatch.setattr(client.session, "get", get)
    monkeypatch.setattr(client.session, "post", post)
    monkeypatch.setattr("somnia_mcp.explorer_client.time.sleep", lambda s: None)
    return client, requests_seen


def test_requires_url():
    with pytest.raises(ConfigurationError):
        ExplorerClient(None)


def test_empty_txlist_is_not_an_error(monkeypatch):
    client, _ = _explorer(monkeypatch, {"status": "0", "message": "No transactions found", "result": []})
    assert client.get_transactions("0x" + "aa" * 20, 1, 10, "desc") == []


def test_rate_limit_payload_is_retried(monkeypatch):
    client, seen = _explorer(
        monkeypatch,
        {"status": "0", "message": "NOTOK", "result": "Max rate limit reached"},
        {"status": "1", "message": "OK", "result": "[]"},
    )
    assert client.get_contract_abi("0x" + "aa" * 20) == "[]"
    assert len(seen) == 2


def test_failed_status_raises(monkeypatch):
    client, _ = _explorer(monkeypatch, {"status": "0", "message": "NOTOK", "result": "Contract source code not verified"})
    with pytest.raises(ExplorerError) as excinfo:
        client.get_contract_abi("0x" + "aa" * 20)
    assert "not verified" in str(excinfo.value)


def test_verify_posts_form(monkeypatch):
    client, seen = _explorer(monkeypatch, {"status": "1", "message": "OK", "result": "guid-123"})
    guid = client.verify_source_code("0x" + "aa" * 20, "contract A {}", "A", "v0.8.24+commit.e11b9ed9", True, "0x00ff")
    assert guid == "guid-123"
    method, form = seen[0]
    assert method == "POST"
    assert form["optimizationUsed"] == "1"
    assert form["constructorArguements"] == "00ff"
