"""reqchain executor - turns a configured Request into one HTTP exchange."""

import json
import logging
from typing import NamedTuple

import requests

from reqchain.errors import (
    NoMethodError,
    ReqchainError,
    RequestBuildError,
    ResponseReadError,
    TransportError,
)
from reqchain.payload import (
    BytesPayload,
    FilePayload,
    StructPayload,
    TextPayload,
    encode_form,
    encode_multipart,
)
from reqchain.request import Request

logger = logging.getLogger(__name__)

BODYLESS_METHODS = ("GET", "HEAD", "DELETE", "OPTIONS")
BODY_METHODS = ("POST", "PUT", "PATCH")

JSON_TYPE = "application/json"
FORM_TYPE = "application/x-www-form-urlencoded"

CHUNK_SIZE = 64 * 1024


class CallResult(NamedTuple):
    """Outcome of a dispatch. Unpacks as (body, response, errors).

    body and response are best effort: check `errors` (or `ok`), not
    whether they are empty.
    """

    body: str
    response: requests.Response | None
    errors: list[ReqchainError]

    @property
    def ok(self) -> bool:
        return not self.errors


def _media_type(value: str | None) -> str:
    """'application/json; charset=utf-8' -> 'application/json'."""
    if not value:
        return ""
    return value.split(";", 1)[0].strip().lower()


def resolve_body(request: Request) -> bytes | None:
    """Pick the body for a POST/PUT/PATCH request.

    Defaults Content-Type to JSON when unset. A file upload replaces
    Content-Type with the multipart type. Appends RequestBuildError and
    returns None when the multipart body can't be built.
    """
    headers = request.headers
    if not headers.get("Content-Type"):
        headers["Content-Type"] = JSON_TYPE
    media = _media_type(headers["Content-Type"])
    payload = request.payload

    if isinstance(payload, FilePayload):
        try:
            body, content_type = encode_multipart(payload)
        except OSError as e:
            request.add_error(RequestBuildError(f"Cannot read upload file: {e}", e))
            return None
        headers["Content-Type"] = content_type
        return body
    struct = payload.data if isinstance(payload, StructPayload) else {}
    if media == JSON_TYPE and struct:
        return json.dumps(struct).encode("utf-8")
    if media == FORM_TYPE:
        # form content type always sends the mapping, even when none was set
        return encode_form(struct).encode("ascii")
    if isinstance(payload, BytesPayload):
        return payload.data
    if isinstance(payload, TextPayload):
        return payload.text.encode("utf-8")
    return b""


def build_request(request: Request) -> requests.Request | None:
    """Build the transport request, or None (with an error appended)."""
    method = (request.method or "").upper()
    if method in BODYLESS_METHODS:
        body = None
    elif method in BODY_METHODS:
        body = resolve_body(request)
        if body is None:
            return None
    else:
        request.add_error(NoMethodError("No method specified"))
        return None

    # headers go on after the body is resolved so defaults land on the wire
    return requests.Request(method, request.url, headers=dict(request.headers), data=body)


def _open_session(request: Request) -> requests.Session:
    session = requests.Session()
    override = request.transport
    if override is not None:
        if override.proxy_url:
            session.proxies = {"http": override.proxy_url, "https": override.proxy_url}
        session.verify = override.verify
    return session


def _read_body(response: requests.Response, request: Request) -> str:
    """Drain the response body. Keeps whatever arrived if reading fails."""
    chunks = bytearray()
    try:
        for chunk in response.iter_content(CHUNK_SIZE):
            chunks.extend(chunk)
    except (requests.exceptions.RequestException, OSError) as e:
        request.add_error(ResponseReadError(f"Failed reading response body: {e}", e))
    finally:
        response.close()
    # keep .content, .text and .json() usable on the returned response
    response._content = bytes(chunks)
    response._content_consumed = True
    try:
        return chunks.decode(response.encoding or "utf-8", errors="replace")
    except LookupError:
        # unknown charset in Content-Type
        return chunks.decode("utf-8", errors="replace")


def call(request: Request) -> CallResult:
    """Dispatch `request` and collect the body, the response and all errors."""
    if request.errors:
        return CallResult("", None, request.errors)

    with _open_session(request) as session:
        built = build_request(request)
        prepared = None
        if built is not None:
            try:
                prepared = session.prepare_request(built)
            except (requests.exceptions.RequestException, ValueError) as e:
                request.add_error(RequestBuildError(f"Cannot build request: {e}", e))

        if request.errors or prepared is None:
            return CallResult("", None, request.errors)

        logger.debug("%s %s", prepared.method, prepared.url)
        verify = request.transport.verify if request.transport else None
        # explicit proxy beats *_PROXY environment variables
        settings = session.merge_environment_settings(
            prepared.url, dict(session.proxies), True, verify, None
        )
        try:
            response = session.send(prepared, timeout=request.timeout, **settings)
        except requests.exceptions.RequestException as e:
            request.add_error(TransportError(f"Request failed: {e}", e))
            return CallResult("", None, request.errors)

        body = _read_body(response, request)
        logger.debug("%s %s -> %s", prepared.method, prepared.url, response.status_code)
        return CallResult(body, response, request.errors)
