# event_gateway/core/loader.py
"""
Broker property files.

Property files are plain YAML. Nested mappings are flattened into dotted
keys so that both of these documents yield the same property
``event_gateway.publication.broker.main.broker-url``:

    event_gateway:
      publication:
        broker:
          main:
            broker-url: ${BROKER_URL:-mqtt://localhost:1883}

    event_gateway.publication.broker.main.broker-url: mqtt://localhost:1883

Only scalar leaves become properties; ``${VAR}`` and ``${VAR:-default}``
references in them are expanded from the environment.
"""
from __future__ import annotations

import logging
import os
import re
from glob import glob
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

logger = logging.getLogger(__name__)

PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def expand_env(text: str) -> str:
    """
    Raises:
        ValueError: If a referenced variable is unset and has no default.
    """

    def lookup(match: re.Match) -> str:
        name, default = match.group("name"), match.group("default")
        value = os.environ.get(name, default)
        if value is None:
            raise ValueError(f"Property references unset variable '{name}'")
        return value

    return PLACEHOLDER.sub(lookup, text)


def flatten_properties(
    document: Mapping[str, Any], prefix: str = ""
) -> dict[str, str]:
    """Flatten nested mappings into ``dotted.key -> str`` properties."""
    flat: dict[str, str] = {}
    for key, value in document.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_properties(value, full_key))
        elif isinstance(value, str):
            flat[full_key] = expand_env(value)
        elif value is not None:
            flat[full_key] = str(value)
    return flat


def property_files(patterns: Iterable[str]) -> list[Path]:
    return sorted({Path(match).resolve() for pattern in patterns for match in glob(pattern)})


def load_properties(patterns: Iterable[str]) -> dict[str, str]:
    """Load and flatten every matching property file. Later files win."""
    patterns = list(patterns)
    files = property_files(patterns)
    if not files:
        logger.warning("No broker property files match %s", patterns)
        return {}

    properties: dict[str, str] = {}
    for path in files:
        document = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        properties.update(flatten_properties(document))
        logger.info("Loaded broker properties from %s", path)
    return properties
