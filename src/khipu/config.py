"""Configuration for the khipu codec server.

Reads from config/khipu.ini if present, environment variables override.
Key material never checked into version control.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path

from khipu.errors import ConfigError

_CONFIG_FILE = Path(__file__).resolve().parent.parent.parent / "config" / "khipu.ini"

# Development key only. Production keys come from [keys] / KHIPU_KEY_<ID>.
DEV_KEY_ID = "test-key"
DEV_KEY = "dGVzdC1rZXktdGVzdC1rZXktdGVzdC1rZXktdGVzdCE="

_KEY_ENV_PREFIX = "KHIPU_KEY_"
_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def _default_keys() -> dict[str, str]:
    return {DEV_KEY_ID: DEV_KEY}


@dataclass(frozen=True)
class KhipuConfig:
    """Codec server configuration. Immutable once loaded."""

    key_id: str = DEV_KEY_ID
    compress: bool = False
    store_url: str = "memory://"
    collection: str = "codex-data"
    keys: dict[str, str] = field(default_factory=_default_keys)
    api_key: str = ""
    host: str = "127.0.0.1"
    port: int = 8233


def _key_id_for_env(env_key: str, keys: dict[str, str]) -> str:
    """Map KHIPU_KEY_<ID> to a key id.

    An already-configured id whose upper-cased, dash-to-underscore form
    equals <ID> is overridden in place; otherwise <ID> becomes a new
    lower-case, underscore-to-dash id.
    """
    suffix = env_key[len(_KEY_ENV_PREFIX):]
    for key_id in keys:
        if key_id.upper().replace("-", "_") == suffix:
            return key_id
    return suffix.lower().replace("_", "-")


def parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ConfigError(f"Not a boolean: {value!r}")


def load_config(config_path: Path | None = None) -> KhipuConfig:
    """Load config from INI file, then override with environment variables."""
    path = config_path or _CONFIG_FILE
    kwargs: dict = {}
    keys = _default_keys()

    if path.exists():
        parser = configparser.ConfigParser()
        # Key ids are case sensitive
        parser.optionxform = str
        parser.read(path)
        if parser.has_section("codec"):
            val = parser.get("codec", "key_id", fallback=None)
            if val is not None:
                kwargs["key_id"] = val
            val = parser.get("codec", "compress", fallback=None)
            if val is not None:
                kwargs["compress"] = parse_bool(val)
        if parser.has_section("store"):
            for ini_key, config_key in [
                ("url", "store_url"),
                ("collection", "collection"),
            ]:
                val = parser.get("store", ini_key, fallback=None)
                if val is not None:
                    kwargs[config_key] = val
        if parser.has_section("keys"):
            keys.update(parser.items("keys"))
        if parser.has_section("server"):
            for ini_key, config_key in [
                ("api_key", "api_key"),
                ("host", "host"),
            ]:
                val = parser.get("server", ini_key, fallback=None)
                if val is not None:
                    kwargs[config_key] = val
            port_str = parser.get("server", "port", fallback=None)
            if port_str is not None:
                kwargs["port"] = int(port_str)

    env_map = {
        "KHIPU_KEY_ID": "key_id",
        "KHIPU_COMPRESS": "compress",
        "KHIPU_STORE_URL": "store_url",
        "KHIPU_COLLECTION": "collection",
        "KHIPU_API_KEY": "api_key",
        "KHIPU_HOST": "host",
        "KHIPU_PORT": "port",
    }
    for env_key, config_key in env_map.items():
        val = os.getenv(env_key)
        if val is not None:
            if config_key == "port":
                kwargs[config_key] = int(val)
            elif config_key == "compress":
                kwargs[config_key] = parse_bool(val)
            else:
                kwargs[config_key] = val

    for env_key, val in os.environ.items():
        if env_key.startswith(_KEY_ENV_PREFIX) and env_key != "KHIPU_KEY_ID":
            keys[_key_id_for_env(env_key, keys)] = val

    kwargs["keys"] = keys
    return KhipuConfig(**kwargs)
