"""Scenario tests for the request builder (configuration phase)."""

from dataclasses import dataclass

import pytest

from reqchain.errors import ConfigurationError
from reqchain.payload import BytesPayload, FilePayload, StructPayload, TextPayload
from reqchain.request import CONTENT_TYPES, Request, new

# ── Construction & chaining ───────────────────────────────────────────────


class TestNew:
    def test_only_url_is_set(self):
        req = new("http://localhost:3000/api")
        assert isinstance(req, Request)
        assert req.url == "http://localhost:3000/api"
        assert req.method is None
        assert req.headers == {}
        assert req.payload is None
        assert req.transport is None
        assert req.errors == []

    def test_every_builder_method_returns_same_request(self, tmp_path):
        req = new("http://localhost:3000/api")
        chain = (
            req.post()
            .set_header("X-Trace", "1")
            .content_type("json")
            .send_raw_bytes(b"x")
            .send_raw_string("y")
            .send_struct({"a": 1})
            .send_file("upload", str(tmp_path / "f.txt"))
            .proxy("http://proxy.local:3128")
            .insecure_skip_verify()
            .set_timeout(5)
        )
        assert chain is req


class TestMethodSelectors:
    @pytest.mark.parametrize(
        "selector,expected",
        [
            ("get", "GET"),
            ("post", "POST"),
            ("put", "PUT"),
            ("delete", "DELETE"),
            ("head", "HEAD"),
            ("options", "OPTIONS"),
            ("patch", "PATCH"),
        ],
    )
    def test_selector_sets_verb(self, selector, expected):
        req = getattr(new("http://x"), selector)()
        assert req.method == expected

    def test_last_call_wins(self):
        assert new("http://x").get().post().put().method == "PUT"


# ── Headers & content type ────────────────────────────────────────────────


class TestHeaders:
    def test_set_header_upserts(self):
        req = new("http://x").set_header("X-A", "1").set_header("X-A", "2")
        assert req.headers == {"X-A": "2"}

    def test_header_names_are_case_sensitive_in_storage(self):
        req = new("http://x").set_header("x-a", "1").set_header("X-A", "2")
        assert req.headers == {"x-a": "1", "X-A": "2"}


class TestContentType:
    @pytest.mark.parametrize("alias,mime", list(CONTENT_TYPES.items()))
    def test_alias_resolves(self, alias, mime):
        assert new("http://x").content_type(alias).headers["Content-Type"] == mime

    def test_unknown_name_used_verbatim(self):
        req = new("http://x").content_type("application/vnd.api+json")
        assert req.headers["Content-Type"] == "application/vnd.api+json"

    def test_form_alias_equals_canonical(self):
        a = new("http://x").content_type("form").headers["Content-Type"]
        b = new("http://x").content_type("application/x-www-form-urlencoded").headers[
            "Content-Type"
        ]
        assert a == b == "application/x-www-form-urlencoded"

    def test_form_data_alias_is_urlencoded(self):
        req = new("http://x").content_type("form-data")
        assert req.headers["Content-Type"] == "application/x-www-form-urlencoded"


# ── Payloads ──────────────────────────────────────────────────────────────


class TestRawPayloads:
    def test_raw_bytes_defaults_content_type(self):
        req = new("http://x").send_raw_bytes(b"\x00\x01")
        assert req.payload == BytesPayload(b"\x00\x01")
        assert req.headers["Content-Type"] == "application/octet-stream"

    def test_raw_bytes_keeps_existing_content_type(self):
        req = new("http://x").content_type("json").send_raw_bytes(b"{}")
        assert req.headers["Content-Type"] == "application/json"

    def test_raw_string_defaults_content_type(self):
        req = new("http://x").send_raw_string("hello")
        assert req.payload == TextPayload("hello")
        assert req.headers["Content-Type"] == "text/plain"

    def test_raw_string_keeps_existing_content_type(self):
        req = new("http://x").content_type("xml").send_raw_string("<a/>")
        assert req.headers["Content-Type"] == "application/xml"

    def test_last_send_wins(self):
        req = new("http://x").send_raw_bytes(b"a").send_raw_string("b")
        assert req.payload == TextPayload("b")


@dataclass
class User:
    name: str
    age: int


class Point:
    def __init__(self, x, y):
        self.x = x
        self.y = y
        self._hidden = "nope"


class TestSendStruct:
    def test_dict(self):
        req = new("http://x").send_struct({"a": 1, "b": ["x", "y"]})
        assert req.payload == StructPayload({"a": 1, "b": ["x", "y"]})
        assert req.errors == []

    def test_dataclass(self):
        req = new("http://x").send_struct(User("ann", 30))
        assert req.payload == StructPayload({"name": "ann", "age": 30})

    def test_plain_object_skips_private_attributes(self):
        req = new("http://x").send_struct(Point(1, 2))
        assert req.payload == StructPayload({"x": 1, "y": 2})

    def test_round_trip_normalises_keys_and_tuples(self):
        req = new("http://x").send_struct({1: ("a", "b")})
        assert req.payload == StructPayload({"1": ["a", "b"]})

    def test_unserializable_value_appends_error(self):
        req = new("http://x").send_raw_string("keep").send_struct({"f": object()})
        assert len(req.errors) == 1
        assert isinstance(req.errors[0], ConfigurationError)
        assert req.payload == TextPayload("keep")

    def test_non_object_appends_error(self):
        req = new("http://x").send_struct([1, 2, 3])
        assert isinstance(req.errors[0], ConfigurationError)
        assert req.payload is None


class TestSendFile:
    def test_file_is_not_opened(self):
        req = new("http://x").send_file("upload", "/nonexistent/path")
        assert req.payload == FilePayload("upload", "/nonexistent/path", {})
        assert req.errors == []

    def test_struct_before_file_becomes_extra_fields(self):
        req = new("http://x").send_struct({"user": "42"}).send_file("avatar", "/tmp/a.png")
        assert req.payload == FilePayload("avatar", "/tmp/a.png", {"user": "42"})

    def test_struct_after_file_becomes_extra_fields(self):
        req = new("http://x").send_file("avatar", "/tmp/a.png").send_struct({"user": "42"})
        assert req.payload == FilePayload("avatar", "/tmp/a.png", {"user": "42"})

    def test_raw_after_file_replaces_it(self):
        req = new("http://x").send_file("avatar", "/tmp/a.png").send_raw_string("x")
        assert req.payload == TextPayload("x")


# ── Transport ─────────────────────────────────────────────────────────────


class TestProxy:
    def test_valid_proxy_keeps_tls_verification(self):
        req = new("https://x").proxy("http://proxy.local:3128")
        assert req.errors == []
        assert req.transport.proxy_url == "http://proxy.local:3128"
        assert req.transport.verify is True

    def test_missing_scheme_appends_error(self):
        req = new("https://x").proxy("proxy.local")
        assert len(req.errors) == 1
        assert isinstance(req.errors[0], ConfigurationError)
        assert req.transport is None

    def test_bad_port_appends_error(self):
        req = new("https://x").proxy("http://proxy.local:notaport")
        assert isinstance(req.errors[0], ConfigurationError)
        assert req.transport is None

    def test_insecure_is_separate_opt_in(self):
        req = new("https://x").proxy("http://proxy.local:3128").insecure_skip_verify()
        assert req.transport.verify is False
        assert req.transport.proxy_url == "http://proxy.local:3128"

    def test_insecure_without_proxy(self):
        req = new("https://x").insecure_skip_verify()
        assert req.transport.proxy_url is None
        assert req.transport.verify is False

    def test_insecure_can_be_undone(self):
        req = new("https://x").insecure_skip_verify().insecure_skip_verify(False)
        assert req.transport.verify is True


# ── Error accumulation ────────────────────────────────────────────────────


class TestErrorAccumulation:
    def test_errors_never_shrink_and_chain_continues(self):
        req = new("http://x")
        lengths = [len(req.errors)]
        req.proxy("nope")
        lengths.append(len(req.errors))
        req.post()
        lengths.append(len(req.errors))
        req.send_struct({"f": object()})
        lengths.append(len(req.errors))
        req.send_struct({"ok": 1})
        lengths.append(len(req.errors))
        req.proxy("http://fine:8080")
        lengths.append(len(req.errors))

        assert lengths == sorted(lengths)
        assert lengths[-1] == 2
        assert req.method == "POST"
        assert req.payload == StructPayload({"ok": 1})

    def test_errors_keep_order(self):
        req = new("http://x").proxy("first").send_struct([1])
        assert "first" in str(req.errors[0])
        assert "JSON object" in str(req.errors[1])
