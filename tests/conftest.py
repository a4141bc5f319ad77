"""Shared fixtures for reqchain tests."""

import io
from unittest.mock import patch

import pytest
import requests
from click.testing import CliRunner
from requests.structures import CaseInsensitiveDict

from reqchain import config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def global_reqchain_dir(tmp_path, monkeypatch):
    """Point the global ~/.reqchain/config.yaml at a temp location."""
    fake_global = tmp_path / "fake_home" / ".reqchain"
    fake_global.mkdir(parents=True)
    monkeypatch.setattr(config, "GLOBAL_CONFIG", fake_global / "config.yaml")
    return fake_global


@pytest.fixture
def fake_send():
    """Patch the transport; tests inspect send.call_args for the prepared request."""
    with patch("requests.Session.send") as send:
        send.return_value = make_response(body=b'{"ok": true}')
        yield send


def sent_request(send) -> requests.PreparedRequest:
    """Return the PreparedRequest passed to a patched Session.send."""
    return send.call_args.args[0]


class BrokenStream:
    """Raw stream that yields one chunk, then fails like a dropped connection."""

    def __init__(self, first: bytes):
        self._chunks = [first]

    def read(self, *args, **kwargs):
        if self._chunks:
            return self._chunks.pop()
        raise OSError("connection reset by peer")

    def close(self):
        pass


def make_response(
    status_code=200,
    body=b"",
    headers=None,
    raw=None,
    encoding=None,
):
    """Factory for requests.Response objects backed by an in-memory stream."""
    r = requests.Response()
    r.status_code = status_code
    r.headers = CaseInsensitiveDict(headers or {})
    r.raw = raw if raw is not None else io.BytesIO(body)
    r.encoding = encoding
    r.url = "http://localhost:3000/"
    return r
