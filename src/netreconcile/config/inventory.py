"""Appliance inventory management from YAML configuration."""
import logging
from dataclasses import fields
from pathlib import Path
from typing import Optional

import yaml

from ..store import ApplianceConfig, RestObjectStore

logger = logging.getLogger(__name__)


class ApplianceInventory:
    """Manages the appliance inventory loaded from YAML config.

    ```yaml
    defaults:
      username: admin
      password_env: NETRECONCILE_PASSWORD
      verify_ssl: false

    appliances:
      bigip-a:
        host: 192.0.2.10
      bigip-b:
        host: 192.0.2.11
        port: 8443
    ```
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the appliances.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "appliances.yaml",
            Path.cwd() / "appliances.yaml",
            Path.home() / ".config" / "netreconcile" / "appliances.yaml",
            Path("/etc/netreconcile/appliances.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find appliances.yaml. Create one in ./configs/appliances.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration and merge defaults."""
        with open(self.config_path) as f:
            self._config = yaml.safe_load(f) or {}

        defaults = self._config.get("defaults", {}) or {}
        for appliance_id, appliance_config in self._config.get("appliances", {}).items():
            for key, value in defaults.items():
                if key not in appliance_config:
                    appliance_config[key] = value

            unknown = set(appliance_config) - {f.name for f in fields(ApplianceConfig)}
            if unknown:
                logger.warning(
                    f"Appliance '{appliance_id}' has unknown settings: {sorted(unknown)}"
                )

    def get_appliance_ids(self) -> list[str]:
        """Get all appliance IDs."""
        return list(self._config.get("appliances", {}).keys())

    def get_appliance_config(self, appliance_id: str) -> ApplianceConfig:
        """Get the connection settings for an appliance."""
        appliances = self._config.get("appliances", {})
        if appliance_id not in appliances:
            raise KeyError(f"Unknown appliance: {appliance_id}")

        known = {f.name for f in fields(ApplianceConfig)}
        settings = {
            k: v for k, v in appliances[appliance_id].items()
            if k in known
        }
        settings.setdefault("name", appliance_id)
        return ApplianceConfig(**settings)

    def get_store(self, appliance_id: str) -> RestObjectStore:
        """Create a REST object store for an appliance."""
        return RestObjectStore(self.get_appliance_config(appliance_id))
