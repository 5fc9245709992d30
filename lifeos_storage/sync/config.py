"""
Sync configuration.

A single JSON blob ``{"enabled": bool, "endpoint"?: str, "apiKey"?: str}``
persisted at a well-known path. A missing or corrupt blob means sync is
disabled. The value is read once and injected into storage handles; changing
it on disk does not affect handles that already exist.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiofiles
import aiofiles.os

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncConfig:
    """Remote sync settings.

    Attributes:
        enabled: Whether background sync runs at all
        endpoint: Base URL of the sync backend
        api_key: Optional bearer credential
    """

    enabled: bool = False
    endpoint: str | None = None
    api_key: str | None = None

    @property
    def is_configured(self) -> bool:
        """True when sync is enabled and has somewhere to go."""
        return self.enabled and bool(self.endpoint)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"enabled": self.enabled}
        if self.endpoint:
            result["endpoint"] = self.endpoint
        if self.api_key:
            result["apiKey"] = self.api_key
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        if not isinstance(data, dict):
            raise ValueError(f"Sync config must be a JSON object, got {type(data).__name__}")
        enabled = data.get("enabled", False)
        if not isinstance(enabled, bool):
            raise ValueError(f"'enabled' must be a boolean, got {enabled!r}")
        endpoint = data.get("endpoint") or None
        api_key = data.get("apiKey") or None
        return cls(
            enabled=enabled,
            endpoint=endpoint.rstrip("/") if isinstance(endpoint, str) else None,
            api_key=api_key if isinstance(api_key, str) else None,
        )


class SyncConfigStore:
    """Reads and writes the persisted sync configuration."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    async def load(self) -> SyncConfig:
        """Load the configuration; any failure yields a disabled config."""
        if not await aiofiles.os.path.exists(self.path):
            return SyncConfig()

        try:
            async with aiofiles.open(self.path) as f:
                content = await f.read()
            return SyncConfig.from_dict(json.loads(content))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load sync config from {self.path}, sync disabled: {e}")
            return SyncConfig()

    async def save(self, config: SyncConfig) -> None:
        """Persist the configuration atomically.

        Raises:
            ConfigurationError: If the file cannot be written
        """
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(json.dumps(config.to_dict(), indent=2))
                await f.flush()
                os.fsync(f.fileno())
            await aiofiles.os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save sync config to {self.path}: {e}")
            raise ConfigurationError(str(self.path), e) from e
        logger.info(f"Sync config saved (enabled={config.enabled})")
