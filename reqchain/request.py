"""reqchain request - fluent builder for a single HTTP request.

    body, response, errors = (
        new("https://api.example.com/users")
        .post()
        .content_type("json")
        .send_struct({"name": "test"})
        .call()
    )

Every builder method returns the request itself. Failures are appended to
`request.errors` instead of being raised, so a chain always runs to the end;
`call()` refuses to touch the network while `errors` is non-empty.
"""

import dataclasses
import json
import logging
from dataclasses import dataclass
from typing import Any

from urllib3.exceptions import LocationParseError
from urllib3.util import parse_url

from reqchain.errors import ConfigurationError, ReqchainError
from reqchain.payload import (
    BytesPayload,
    FilePayload,
    Payload,
    StructPayload,
    TextPayload,
)

logger = logging.getLogger(__name__)

CONTENT_TYPES = {
    "html": "text/html",
    "text": "text/plain",
    "json": "application/json",
    "xml": "application/xml",
    "urlencoded": "application/x-www-form-urlencoded",
    "form": "application/x-www-form-urlencoded",
    "form-data": "application/x-www-form-urlencoded",
    "stream": "application/octet-stream",
}


@dataclass
class TransportOverride:
    """Proxy and TLS settings replacing the default client transport."""

    proxy_url: str | None = None
    verify: bool = True


def _to_jsonable(value: Any) -> Any:
    """json.dumps fallback for dataclasses and plain objects."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if hasattr(value, "__dict__"):
        return {k: v for k, v in vars(value).items() if not k.startswith("_")}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class Request:
    """One in-progress HTTP request. Create it with `new(url)`."""

    def __init__(self, url: str):
        self.url = url
        self.method: str | None = None
        self.headers: dict[str, str] = {}
        self.payload: Payload | None = None
        self.transport: TransportOverride | None = None
        self.timeout: float | tuple[float, float] | None = None
        self.errors: list[ReqchainError] = []

    def __repr__(self) -> str:
        return f"<Request {self.method or '?'} {self.url} errors={len(self.errors)}>"

    def add_error(self, error: ReqchainError) -> "Request":
        logger.warning("%s: %s", type(error).__name__, error)
        self.errors.append(error)
        return self

    # ── Method selectors ────────────────────────────────────────────────

    def _set_method(self, method: str) -> "Request":
        self.method = method
        return self

    def get(self) -> "Request":
        return self._set_method("GET")

    def post(self) -> "Request":
        return self._set_method("POST")

    def put(self) -> "Request":
        return self._set_method("PUT")

    def delete(self) -> "Request":
        return self._set_method("DELETE")

    def head(self) -> "Request":
        return self._set_method("HEAD")

    def options(self) -> "Request":
        return self._set_method("OPTIONS")

    def patch(self) -> "Request":
        return self._set_method("PATCH")

    # ── Headers ─────────────────────────────────────────────────────────

    def set_header(self, name: str, value: str) -> "Request":
        self.headers[name] = value
        return self

    def content_type(self, name: str) -> "Request":
        """Set Content-Type from an alias (json, form, ...) or a literal MIME type."""
        return self.set_header("Content-Type", CONTENT_TYPES.get(name, name))

    def _default_content_type(self, mime: str) -> None:
        if not self.headers.get("Content-Type"):
            self.headers["Content-Type"] = mime

    # ── Payloads ────────────────────────────────────────────────────────

    def send_raw_bytes(self, data: bytes) -> "Request":
        self._default_content_type("application/octet-stream")
        self.payload = BytesPayload(bytes(data))
        return self

    def send_raw_string(self, text: str) -> "Request":
        self._default_content_type("text/plain")
        self.payload = TextPayload(text)
        return self

    def send_file(self, field: str, path: str) -> "Request":
        """Upload `path` as multipart field `field`. The file is opened at dispatch.

        A mapping set earlier with send_struct travels along as extra form fields.
        """
        extra = self.payload.data if isinstance(self.payload, StructPayload) else {}
        self.payload = FilePayload(field, str(path), dict(extra))
        return self

    def send_struct(self, value: Any) -> "Request":
        """Use `value` as a key/value mapping payload.

        The value goes through a JSON round trip, so it ends up as the same
        plain dict a JSON decoder would produce. Must encode to a JSON object.
        """
        try:
            encoded = json.dumps(value, default=_to_jsonable)
        except (TypeError, ValueError) as e:
            return self.add_error(ConfigurationError(f"Cannot encode payload: {e}", e))
        try:
            data = json.loads(encoded)
        except ValueError as e:
            return self.add_error(ConfigurationError(f"Cannot decode payload: {e}", e))
        if not isinstance(data, dict):
            return self.add_error(
                ConfigurationError(
                    f"Payload must encode to a JSON object, got {type(data).__name__}"
                )
            )

        if isinstance(self.payload, FilePayload):
            self.payload = dataclasses.replace(self.payload, fields=data)
        else:
            self.payload = StructPayload(data)
        return self

    # ── Transport ───────────────────────────────────────────────────────

    def proxy(self, proxy_url: str) -> "Request":
        """Route the request through `proxy_url`. TLS verification is unchanged."""
        try:
            parsed = parse_url(proxy_url)
        except LocationParseError as e:
            return self.add_error(ConfigurationError(f"Invalid proxy URL {proxy_url!r}: {e}", e))
        if not parsed.scheme or not parsed.host:
            return self.add_error(
                ConfigurationError(f"Invalid proxy URL {proxy_url!r}: scheme and host required")
            )

        if self.transport is None:
            self.transport = TransportOverride()
        self.transport.proxy_url = parsed.url
        return self

    def insecure_skip_verify(self, skip: bool = True) -> "Request":
        """Disable (or re-enable) TLS certificate verification. Opt-in only."""
        if self.transport is None:
            self.transport = TransportOverride()
        self.transport.verify = not skip
        if skip:
            logger.warning("TLS certificate verification disabled for %s", self.url)
        return self

    def set_timeout(self, seconds: float | tuple[float, float] | None) -> "Request":
        """Connect/read timeout handed to the transport. None blocks indefinitely."""
        self.timeout = seconds
        return self

    # ── Dispatch ────────────────────────────────────────────────────────

    def call(self):
        """Dispatch the request. Returns CallResult(body, response, errors)."""
        from reqchain.executor import call

        return call(self)


def new(url: str) -> Request:
    """Start a request for `url`."""
    return Request(url)
