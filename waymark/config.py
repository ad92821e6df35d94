"""
Config system - Layered typed configuration with validation.

Merge order (later overrides earlier):
1. Dataclass defaults
2. ``.env`` file (``WAYMARK_*`` keys only)
3. Environment variables (``WAYMARK_*``)
4. Explicit overrides
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

from dotenv import dotenv_values

from .faults import ConfigInvalidFault

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")
_TRUE = ("true", "yes", "1", "on")
_FALSE = ("false", "no", "0", "off")


@dataclass
class WaymarkConfig:
    """
    Host configuration.

    Attributes:
        debug: Include exception details in 500 answers
        host: Bind address for ``run()``
        port: Bind port for ``run()``
        log_level: Root log level configured by ``run()``
        seal_registry: Seal the metadata registry on startup
        max_body_size: Largest accepted request body in bytes (None = no limit)
        request_id_header: Header read and echoed by RequestIdMiddleware
    """
    debug: bool = False
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"
    seal_registry: bool = True
    max_body_size: Optional[int] = 1024 * 1024
    request_id_header: str = "X-Request-ID"

    def __post_init__(self):
        self.log_level = str(self.log_level).upper()
        if self.log_level not in _LOG_LEVELS:
            raise ConfigInvalidFault("log_level", f"must be one of {', '.join(_LOG_LEVELS)}")
        if not 0 < self.port < 65536:
            raise ConfigInvalidFault("port", "must be between 1 and 65535")
        if self.max_body_size is not None and self.max_body_size < 0:
            raise ConfigInvalidFault("max_body_size", "must be >= 0")

    @property
    def log_level_value(self) -> int:
        return logging.getLevelName(self.log_level)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


class ConfigLoader:
    """
    Loads WaymarkConfig from defaults, a ``.env`` file, the environment and
    explicit overrides.

    Example:
        ```python
        config = ConfigLoader.load(env_file=".env", overrides={"debug": True})
        ```
    """

    def __init__(self, env_prefix: str = "WAYMARK_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_file: Optional[Union[str, Path]] = ".env",
        env_prefix: str = "WAYMARK_",
        overrides: Optional[Mapping[str, Any]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> WaymarkConfig:
        """
        Build a validated WaymarkConfig.

        Args:
            env_file: Path to a ``.env`` file; skipped when missing or None
            env_prefix: Prefix of the variables to read
            overrides: Highest-precedence values, already typed
            environ: Environment mapping (``os.environ`` by default)

        Raises:
            ConfigInvalidFault: On an unknown override key or an unparsable value
        """
        loader = cls(env_prefix=env_prefix)

        if env_file is not None and Path(env_file).exists():
            loader._merge_prefixed(dotenv_values(env_file))

        loader._merge_prefixed(os.environ if environ is None else environ)

        if overrides:
            known = {f.name for f in fields(WaymarkConfig)}
            for key, value in overrides.items():
                if key not in known:
                    raise ConfigInvalidFault(key, "unknown configuration key")
                loader.config_data[key] = value

        return WaymarkConfig(**loader.config_data)

    def _merge_prefixed(self, source: Mapping[str, Optional[str]]) -> None:
        types = {f.name: f.type for f in fields(WaymarkConfig)}
        for key, raw in source.items():
            if not key.startswith(self.env_prefix) or raw is None:
                continue
            name = key[len(self.env_prefix):].lower()
            if name not in types:
                continue
            self.config_data[name] = self._parse_value(name, raw, str(types[name]))

    @staticmethod
    def _parse_value(name: str, value: str, type_name: str) -> Any:
        """Parse a string value for a field declared as ``type_name``."""
        value = value.strip()
        if "bool" in type_name:
            if value.lower() in _TRUE:
                return True
            if value.lower() in _FALSE:
                return False
            raise ConfigInvalidFault(name, f"expected a boolean, got {value!r}")
        if "int" in type_name:
            if "Optional" in type_name and value.lower() in ("", "none", "null"):
                return None
            try:
                return int(value)
            except ValueError:
                raise ConfigInvalidFault(name, f"expected an integer, got {value!r}") from None
        return value
