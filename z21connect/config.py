"""
Command station connection settings.

Settings come from, in increasing priority:

1. Built-in defaults (`StationConfig`)
2. A JSON file: an explicit path, else ``./.z21connect.json``, else
   ``~/.z21connect.json`` (the first one that exists)
3. Environment variables ``Z21_ADDRESS`` and ``Z21_PORT``

Example file::

    {"address": "192.168.0.111", "port": 21105, "type": "z21", "timeout": 10}
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from z21connect.protocol.constants import ProtocolConstants

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".z21connect.json"

ENV_ADDRESS = "Z21_ADDRESS"
ENV_PORT = "Z21_PORT"


class StationConfig(BaseModel):
    """
    Where and how to reach the command station.

    Attributes:
        address: Host name or IP address.
        port: UDP port.
        type: Command station type; only "z21" is supported.
        timeout: Default response timeout in seconds.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    address: str = Field(default=ProtocolConstants.DEFAULT_ADDRESS, min_length=1)
    port: int = Field(default=ProtocolConstants.DEFAULT_PORT, ge=1, le=65535)
    type: Literal["z21"] = "z21"
    timeout: float = Field(default=ProtocolConstants.DEFAULT_TIMEOUT, gt=0)


def default_config_paths() -> list[Path]:
    """Candidate config files in lookup order."""
    return [Path.cwd() / CONFIG_FILENAME, Path.home() / CONFIG_FILENAME]


def _read_file(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ValueError(f"Cannot parse config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Cannot parse config {path}: expected a JSON object")
    return data


def load_config(
    path: str | os.PathLike[str] | None = None,
    environ: Mapping[str, str] | None = None,
) -> StationConfig:
    """
    Load settings from file and environment.

    Args:
        path: Explicit config file. It must exist when given.
        environ: Environment mapping, ``os.environ`` by default.

    Returns:
        Validated settings.

    Raises:
        ValueError: If the file cannot be read or a value is invalid.
    """
    environ = os.environ if environ is None else environ
    values: dict = {}

    if path is not None:
        values.update(_read_file(Path(path)))
        logger.debug("Loaded config from %s", path)
    else:
        for candidate in default_config_paths():
            if candidate.is_file():
                values.update(_read_file(candidate))
                logger.debug("Loaded config from %s", candidate)
                break

    if environ.get(ENV_ADDRESS):
        values["address"] = environ[ENV_ADDRESS]
    if environ.get(ENV_PORT):
        values["port"] = environ[ENV_PORT]

    try:
        return StationConfig.model_validate(values)
    except ValidationError as e:
        raise ValueError(f"Invalid configuration: {e}") from e
