"""Configuration handling helper functions and default configuration."""
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from figcan import Configuration, Extensible  # type:ignore[attr-defined]

ENV_PREFIX = "OSSMULTIPART_"

default_transport_config = {
    "factory": "ossmultipart.transport.local:factory",
    "options": Extensible({"path": "oss-storage"}),
}

default_config = {
    "PART_SIZE": 10 * 1024 * 1024,
    "MAX_WORKERS": 4,
    "MAX_RETRIES": 3,
    "RETRY_BACKOFF": 1.0,
    "DISABLE_CPT": False,
    "TRANSPORT": default_transport_config,
}

_RESERVED_ENV_VARS = frozenset(
    f"{ENV_PREFIX}{name}" for name in ("CONFIG_FILE", "CONFIG_STR", "DEBUG")
)

load_dotenv()


def configure(additional_config: dict[str, Any] | None = None) -> Configuration:
    """Compose configuration from defaults, YAML, the environment and
    ``additional_config``, in increasing order of precedence.

    YAML is read from the file named by ``OSSMULTIPART_CONFIG_FILE`` and
    from the string in ``OSSMULTIPART_CONFIG_STR``; the file comes first.
    Any other ``OSSMULTIPART_*`` variable overrides a single key.
    """
    config = Configuration(default_config)
    environ = {
        k: v
        for k, v in os.environ.items()
        if k not in _RESERVED_ENV_VARS
    }

    for yaml_source in _yaml_sources():
        config.apply(yaml.safe_load(yaml_source) or {})

    config.apply_flat(environ, prefix=ENV_PREFIX)
    if additional_config:
        config.apply(additional_config)

    return config


def _yaml_sources() -> list[str]:
    sources = []
    config_file = os.environ.get(f"{ENV_PREFIX}CONFIG_FILE")
    if config_file:
        sources.append(Path(config_file).read_text())
    config_str = os.environ.get(f"{ENV_PREFIX}CONFIG_STR")
    if config_str:
        sources.append(config_str)
    return sources
