"""reqchain config - request defaults from .reqchain.yaml and .env.

    defaults:
      base_url: http://localhost:3000
      env_file: .env            # relative to the config file
      headers:
        Accept: application/json
      auth:
        type: bearer            # bearer | api-key | basic
        token: ${API_TOKEN}
      content_type: json
      proxy: http://proxy.local:3128
      insecure: false
      timeout: 30

Every string value may reference $VAR or ${VAR}, looked up in the .env
file first, then the process environment.
"""

import base64
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values

from reqchain.request import Request

logger = logging.getLogger(__name__)

CONFIG_NAMES = (".reqchain.yaml", ".reqchain.yml", "reqchain.yaml", "reqchain.yml")
GLOBAL_CONFIG = Path.home() / ".reqchain" / "config.yaml"

_VAR = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


@dataclass
class Defaults:
    """Settings applied to every request built by the CLI."""

    base_url: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    content_type: str | None = None
    proxy: str | None = None
    insecure: bool = False
    timeout: float | None = None
    source: Path | None = None

    def apply(self, request: Request) -> Request:
        """Fill in what `request` doesn't already set.

        Headers already on the request win. A relative URL gets base_url.
        A bad proxy ends up in request.errors like any builder failure.
        """
        if self.base_url and not request.url.startswith(("http://", "https://")):
            request.url = self.base_url.rstrip("/") + "/" + request.url.lstrip("/")

        for name, value in self.headers.items():
            if name not in request.headers:
                request.set_header(name, value)
        if self.content_type and "Content-Type" not in request.headers:
            request.content_type(self.content_type)

        if self.proxy:
            request.proxy(self.proxy)
        if self.insecure:
            request.insecure_skip_verify()
        if self.timeout and request.timeout is None:
            request.set_timeout(self.timeout)
        return request


def find_config(config_file: str | None = None) -> Path | None:
    """-c path if given (no fallthrough), else CWD names, else ~/.reqchain/config.yaml."""
    if config_file:
        path = Path(config_file)
        if not path.is_file():
            logger.warning("Config file %s not found, using no defaults", path)
            return None
        return path.resolve()
    for path in [Path(name) for name in CONFIG_NAMES] + [GLOBAL_CONFIG]:
        if path.is_file():
            return path.resolve()
    return None


def expand_vars(value: Any, env: dict[str, str]) -> Any:
    """Substitute $VAR / ${VAR} in every string of a YAML value. Unknown names stay."""
    if isinstance(value, str):
        return _VAR.sub(lambda m: env.get(m.group(1) or m.group(2), m.group(0)), value)
    if isinstance(value, dict):
        return {k: expand_vars(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [expand_vars(v, env) for v in value]
    return value


def auth_header(auth: dict) -> tuple[str, str] | None:
    """(name, value) for a bearer, api-key or basic auth block."""
    kind = str(auth.get("type", "")).lower()
    token = str(auth.get("token", ""))
    if kind == "bearer":
        return "Authorization", f"Bearer {token}"
    if kind == "api-key":
        return str(auth.get("header", "X-API-Key")), token
    if kind == "basic":
        pair = f"{auth.get('username', '')}:{auth.get('password', '')}"
        return "Authorization", "Basic " + base64.b64encode(pair.encode()).decode()
    logger.warning("Ignoring auth block with unknown type %r", kind)
    return None


def load_defaults(config_file: str | None = None) -> Defaults:
    """Read the `defaults` block of the config file. Empty Defaults if none is found."""
    path = find_config(config_file)
    if path is None:
        return Defaults()
    with open(path) as f:
        raw = (yaml.safe_load(f) or {}).get("defaults") or {}

    env = dict(os.environ)
    if raw.get("env_file"):
        dotenv_vars = dotenv_values(path.parent / str(raw["env_file"]))
        env.update({k: v for k, v in dotenv_vars.items() if v is not None})
    raw = expand_vars(raw, env)

    headers = {str(k): str(v) for k, v in (raw.get("headers") or {}).items()}
    if raw.get("auth"):
        header = auth_header(raw["auth"])
        if header:
            headers[header[0]] = header[1]

    timeout = raw.get("timeout")
    logger.debug("Loaded request defaults from %s", path)
    return Defaults(
        base_url=str(raw.get("base_url") or ""),
        headers=headers,
        content_type=raw.get("content_type"),
        proxy=raw.get("proxy"),
        insecure=bool(raw.get("insecure")),
        timeout=float(timeout) if timeout else None,
        source=path,
    )
