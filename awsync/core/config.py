"""
Sync Configuration Module
=========================

Boolean enable/disable switches consulted by the fetch orchestrator, plus
the credential cache root.

Keys are dotted paths namespaced by provider:

- ``aws.<service>.sync`` : service-wide switch (default: true)
- ``aws.<service>.<resource_type>.sync`` : per-type switch (default: true)

Config file example::

    cache_dir: ~/.awsync
    aws:
      ec2:
        sync: true
        volume:
          sync: false
      iam:
        sync: false

Example
-------
>>> config = SyncConfig.from_mapping({"aws.ec2.volume.sync": False})
>>> config.get_bool("aws.ec2.volume.sync", True)
False
>>> config.get_bool("aws.ec2.sync", True)
True
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

# Module logger
logger = logging.getLogger(__name__)

PROVIDER_PREFIX = "aws"

_TRUE_STRINGS = {"true", "yes", "on", "1"}
_FALSE_STRINGS = {"false", "no", "off", "0"}


def service_sync_key(service: str) -> str:
    return f"{PROVIDER_PREFIX}.{service}.sync"


def resource_sync_key(service: str, resource_type: str) -> str:
    return f"{PROVIDER_PREFIX}.{service}.{resource_type}.sync"


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, full_key))
        else:
            flat[full_key] = value
    return flat


@dataclass(frozen=True)
class SyncConfig:
    """
    Read-only synchronization settings.

    Parameters
    ----------
    values : dict, optional
        Flat mapping of dotted keys to values.
    cache_dir : Path, optional
        Root directory of the credential cache. ``None`` disables caching.
    """

    values: Dict[str, Any] = field(default_factory=dict)
    cache_dir: Optional[Path] = None

    @classmethod
    def from_mapping(
        cls,
        data: Optional[Mapping[str, Any]] = None,
        cache_dir: Optional[Union[str, Path]] = None,
    ) -> SyncConfig:
        """
        Build a config from a nested or flat mapping.

        A top-level ``cache_dir`` entry is used when ``cache_dir`` is not
        given explicitly.
        """
        flat = _flatten(data or {})
        root = cache_dir if cache_dir is not None else flat.pop("cache_dir", None)
        flat.pop("cache_dir", None)
        return cls(
            values=flat,
            cache_dir=Path(root).expanduser() if root else None,
        )

    @classmethod
    def load(
        cls,
        path: Union[str, Path],
        cache_dir: Optional[Union[str, Path]] = None,
    ) -> SyncConfig:
        """
        Load a YAML config file.

        Raises
        ------
        ValueError
            If the file does not contain a mapping.
        """
        path = Path(path).expanduser()
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, Mapping):
            raise ValueError(f"config file {path} must contain a mapping")
        logger.debug(f"Loaded sync config from {path}")
        return cls.from_mapping(data, cache_dir=cache_dir)

    def get_bool(self, key: str, default: bool) -> bool:
        """
        Look up a boolean switch.

        Unknown or unparsable values fall back to ``default``.
        """
        value = self.values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, (int, float)):
            return bool(value)
        text = str(value).strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        logger.warning(f"Ignoring non-boolean value {value!r} for '{key}'")
        return default

    def with_overrides(self, **overrides: Any) -> SyncConfig:
        """Return a copy with ``overrides`` (dotted keys) applied."""
        values = dict(self.values)
        values.update(overrides)
        return replace(self, values=values)

    def disable(self, *keys: str) -> SyncConfig:
        """Return a copy with every key in ``keys`` set to false."""
        return self.with_overrides(**{k: False for k in keys})

    def with_cache_dir(self, cache_dir: Optional[Union[str, Path]]) -> SyncConfig:
        return replace(
            self, cache_dir=Path(cache_dir).expanduser() if cache_dir else None
        )
