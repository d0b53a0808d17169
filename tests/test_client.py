"""Tests for the single-record InfluxDB write client."""

from __future__ import annotations

import logging
from typing import List

import pytest
import requests
import responses

from slotwriter.core.client import (
    TRANSPORT_ERROR_CODE,
    UNKNOWN_ERROR_CODE,
    Destination,
    WriteClient,
    WriteResult,
    send,
)


WRITE_URL = "http://influx.local:8086/api/v2/write?org=org&bucket=bucket&precision=ms"


def make_destination(**overrides) -> Destination:
    data = {
        "base_url": "http://influx.local:8086",
        "org": "org",
        "bucket": "bucket",
        "token": "secret-token",
        "timeout_s": 2.0,
    }
    data.update(overrides)
    return Destination(**data)


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self._text = text
        self.headers = {}

    @property
    def text(self) -> str:
        return self._text


class FakeSession:
    def __init__(self, responses):
        self._responses = list(responses)
        self.verify = True
        self.calls: List[dict] = []
        self.closed = False

    def post(self, url, headers=None, data=None, timeout=None):
        self.calls.append({"url": url, "headers": headers, "data": data, "timeout": timeout})
        action = self._responses.pop(0)
        if isinstance(action, Exception):
            raise action
        return action

    def close(self):
        self.closed = True


def test_destination_write_url_and_headers():
    destination = Destination.from_host("127.0.0.1", 8086, org="my org", bucket="b", token="t")

    assert destination.write_url == "http://127.0.0.1:8086/api/v2/write?org=my+org&bucket=b&precision=ms"
    assert destination.headers == {
        "Authorization": "Token t",
        "Content-Type": "text/plain; charset=utf-8",
    }


@responses.activate
def test_send_success_posts_one_record():
    responses.add(responses.POST, WRITE_URL, status=204)

    client = WriteClient(make_destination())
    try:
        result = client.send("m,room=1 temp=21.5")
    finally:
        client.close()

    assert result == WriteResult.success()
    assert len(responses.calls) == 1
    request = responses.calls[0].request
    assert request.body == b"m,room=1 temp=21.5"
    assert request.headers["Authorization"] == "Token secret-token"
    assert request.headers["Content-Type"] == "text/plain; charset=utf-8"


@responses.activate
def test_send_unauthorized_returns_status_and_body(caplog):
    caplog.set_level(logging.DEBUG, logger="sender")
    responses.add(responses.POST, WRITE_URL, status=401, body='{"code":"unauthorized","message":"unauthorized access"}')

    result = send(make_destination(), "m temp=1")

    assert result.ok is False
    assert result.code == 401
    assert result.kind == "rejected"
    assert result.message == '{"code":"unauthorized","message":"unauthorized access"}'
    assert any("status=401" in record.message for record in caplog.records)


@responses.activate
def test_send_unreachable_uses_transport_sentinel():
    responses.add(responses.POST, WRITE_URL, body=requests.ConnectionError("Name or service not known"))

    result = send(make_destination(), "m temp=1")

    assert result.ok is False
    assert result.code == TRANSPORT_ERROR_CODE
    assert result.code != 401
    assert result.kind == "unreachable"
    assert "ConnectionError" in result.message
    assert "Name or service not known" in result.message


def test_send_timeout_is_transport_failure_and_timeout_is_applied():
    session = FakeSession([requests.Timeout("read timed out")])
    client = WriteClient(make_destination(timeout_s=0.5), session=session)

    result = client.send("m temp=1")

    assert result.code == TRANSPORT_ERROR_CODE
    assert session.calls[0]["timeout"] == 0.5


def test_send_unexpected_error_uses_unknown_sentinel():
    session = FakeSession([TypeError("boom")])
    client = WriteClient(make_destination(), session=session)

    result = client.send("m temp=1")

    assert result.code == UNKNOWN_ERROR_CODE
    assert result.kind == "unknown"
    assert result.message == "boom"


def test_send_truncates_long_error_bodies():
    session = FakeSession([FakeResponse(400, "x" * 600)])
    client = WriteClient(make_destination(), session=session)

    result = client.send("m temp=1")

    assert result.code == 400
    assert result.message.startswith("x" * 512)
    assert "[truncated 88 chars]" in result.message


def test_client_holds_no_state_between_writes():
    session = FakeSession([FakeResponse(500, "down"), FakeResponse(204)])
    client = WriteClient(make_destination(), session=session)

    first = client.send("m temp=1")
    second = client.send("m temp=2")

    assert first.code == 500
    assert second.ok is True
    assert [call["data"] for call in session.calls] == [b"m temp=1", b"m temp=2"]


def test_close_releases_session_once():
    session = FakeSession([])
    client = WriteClient(make_destination(verify_ssl=False), session=session)

    client.close()
    client.close()

    assert session.closed is True
    assert session.verify is False


@pytest.mark.parametrize("status_code", [200, 204])
def test_any_2xx_is_success(status_code):
    session = FakeSession([FakeResponse(status_code)])

    assert send(make_destination(), "m temp=1", session=session).ok is True
