"""reqchain CLI - build and send one HTTP request from the command line."""

import json
import logging
import sys
from pathlib import Path

import click

from reqchain.request import CONTENT_TYPES

METHODS = ("GET", "POST", "PUT", "DELETE", "HEAD", "OPTIONS", "PATCH")

TOOL_HELP = """\
reqchain — send one HTTP request, print the response.

\b
EXAMPLES
────────
  reqchain GET http://localhost:3000/api/users
  reqchain POST http://localhost:3000/api/users -j '{"name":"test"}'
  reqchain POST /api/login -t form -d user=admin -d password=secret
  reqchain PUT /api/blob -t stream --body-file ./blob.bin
  reqchain POST /api/upload --file avatar=./me.png -d user=42

\b
PAYLOAD
───────
  Only one payload kind is sent. When several are given, the later one
  in this list wins: -b/--body, --body-file, -j/--json and -d, --file.
  -d fields go along with --file as extra multipart fields.

\b
CONTENT TYPE ALIASES (-t)
─────────────────────────
""" + "\n".join(f"  {alias:<12}{mime}" for alias, mime in CONTENT_TYPES.items()) + """

\b
CONFIG
──────
  Defaults are read from -c FILE, else .reqchain.yaml in CWD,
  else ~/.reqchain/config.yaml:

\b
    defaults:
      base_url: http://localhost:3000
      env_file: .env
      timeout: 30
      proxy: http://proxy.local:3128
      headers:
        Accept: application/json
      auth:
        type: bearer
        token: ${API_TOKEN}
"""


@click.command(
    cls=click.Command,
    help=TOOL_HELP,
    context_settings={"max_content_width": 88},
)
@click.argument("method", type=click.Choice(METHODS, case_sensitive=False))
@click.argument("url")
@click.option(
    "-c",
    "--config",
    "config_file",
    default=None,
    help="Config file path. Default: .reqchain.yaml in CWD, then ~/.reqchain/config.yaml.",
)
@click.option(
    "-H",
    "--header",
    multiple=True,
    help="HTTP header as 'Name: Value'. Repeatable.",
)
@click.option(
    "-t",
    "--type",
    "content_type",
    default=None,
    help="Content-Type alias (json, form, text, ...) or MIME type.",
)
@click.option("-b", "--body", default=None, help="Raw request body string.")
@click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Send the file's bytes verbatim as the body.",
)
@click.option("-j", "--json", "json_body", default=None, help="JSON object payload.")
@click.option(
    "-d",
    "--data",
    "data_fields",
    multiple=True,
    help="Payload field as KEY=VALUE. Repeated keys become lists. Repeatable.",
)
@click.option(
    "--file",
    "file_spec",
    default=None,
    metavar="FIELD=PATH",
    help="Upload PATH as multipart/form-data field FIELD.",
)
@click.option("--proxy", default=None, help="Proxy URL, e.g. http://proxy.local:3128.")
@click.option(
    "--insecure",
    is_flag=True,
    default=False,
    help="Skip TLS certificate verification.",
)
@click.option("--timeout", type=float, default=None, help="Timeout in seconds.")
@click.option(
    "-i",
    "--include",
    is_flag=True,
    default=False,
    help="Print response headers too.",
)
@click.option("--debug", is_flag=True, default=False, help="Log to stderr at DEBUG level.")
def main(
    method,
    url,
    config_file,
    header,
    content_type,
    body,
    body_file,
    json_body,
    data_fields,
    file_spec,
    proxy,
    insecure,
    timeout,
    include,
    debug,
):
    """Build a request from options, send it, print the response."""
    from reqchain.config import load_defaults
    from reqchain.request import new

    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    defaults = load_defaults(config_file)

    # --- Build ---
    req = new(url)
    getattr(req, method.lower())()
    defaults.apply(req)

    for name, value in _parse_headers(header).items():
        req.set_header(name, value)
    if content_type:
        req.content_type(content_type)
    if proxy:
        req.proxy(proxy)
    if insecure:
        req.insecure_skip_verify()
    if timeout:
        req.set_timeout(timeout)

    if body is not None:
        req.send_raw_string(body)
    if body_file is not None:
        req.send_raw_bytes(body_file.read_bytes())
    struct = _build_struct(json_body, data_fields)
    if struct is not None:
        req.send_struct(struct)
    if file_spec:
        field, path = _parse_file_spec(file_spec)
        req.send_file(field, path)

    # --- Dispatch ---
    result = req.call()
    if result.response is not None:
        click.echo(f"STATUS: {result.response.status_code}")
        if include:
            for name, value in result.response.headers.items():
                click.echo(f"{name}: {value}")
        click.echo("BODY:")
        click.echo(result.body)

    if result.errors:
        for err in result.errors:
            click.echo(f"ERROR: {err}", err=True)
        sys.exit(1)


# ── Helpers ──────────────────────────────────────────────────────────────


def _parse_headers(header_tuples):
    """Parse -H 'Name: Value' tuples into a dict."""
    headers = {}
    for h in header_tuples:
        if ":" in h:
            k, v = h.split(":", 1)
            headers[k.strip()] = v.strip()
    return headers


def _build_struct(json_body, data_fields):
    """Merge -j JSON and -d KEY=VALUE fields into one mapping, or None."""
    if json_body is None and not data_fields:
        return None

    struct = {}
    if json_body is not None:
        try:
            struct = json.loads(json_body)
        except json.JSONDecodeError as e:
            raise click.BadParameter(f"not valid JSON: {e}", param_hint="--json") from e
        if not isinstance(struct, dict):
            raise click.BadParameter("must be a JSON object", param_hint="--json")

    for spec in data_fields:
        if "=" not in spec:
            raise click.BadParameter(f"expected KEY=VALUE, got {spec!r}", param_hint="--data")
        key, value = spec.split("=", 1)
        key = key.strip()
        if key in struct:
            # repeated key -> list of values
            existing = struct[key]
            struct[key] = (existing if isinstance(existing, list) else [existing]) + [value]
        else:
            struct[key] = value
    return struct


def _parse_file_spec(spec):
    if "=" not in spec:
        raise click.BadParameter(f"expected FIELD=PATH, got {spec!r}", param_hint="--file")
    field, path = spec.split("=", 1)
    return field.strip(), path.lstrip("@")
