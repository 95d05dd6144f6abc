"""Service configuration read from the environment or a .env file."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import dotenv_values, find_dotenv, load_dotenv

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Config:
    """Where the service listens and under which path prefix."""

    env: str
    host: str
    port: int
    prefix: Optional[str] = None


def _require(values: Mapping[str, str], key: str) -> str:
    try:
        return values[key]
    except KeyError:
        raise ValueError(f"missing value for field `{key}`") from None


def _parse_port(raw: str) -> int:
    text = raw[1:] if raw.startswith("+") else raw
    if not text or not text.isdecimal() or not text.isascii():
        raise ValueError(f"invalid port {raw!r}")
    port = int(text)
    if port > 65535:
        raise ValueError(f"invalid port {raw!r}")
    return port


def get_config(environ: Optional[Mapping[str, str]] = None) -> Config:
    """Read the configuration.

    Unless the ``env`` variable says otherwise, values from a ``.env`` file
    found from the working directory are added without overriding ones
    already set. Without ``environ`` the process environment is used.
    """
    source = os.environ if environ is None else environ
    mode = source.get("env", "file")
    if mode == "file":
        logger.info("using .env file as environment variables")
        path = find_dotenv(usecwd=True)
        if environ is None:
            if path:
                load_dotenv(path, override=False)
            merged = dict(os.environ)
        else:
            merged = {}
            if path:
                merged.update({k: v for k, v in dotenv_values(path).items() if v is not None})
            merged.update(environ)
    else:
        logger.info("using server environment as environment variables")
        merged = dict(source)

    values = {key.lower(): value for key, value in merged.items()}
    return Config(
        env=_require(values, "env"),
        host=_require(values, "host"),
        port=_parse_port(_require(values, "port")),
        prefix=values.get("prefix"),
    )