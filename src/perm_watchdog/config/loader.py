"""YAML loader for watchdog configuration documents.

A watchdog document mirrors the shape of the directory tree it manages::

    group: staff
    mode: "u=rwX,g=rX,o="
    submissions:
      mode: "u=rwX,g=rwX,o="
      2026-05-01 23:59:00:
        dir: "u=rwx,g=rx,o="
        file: "u=rw,g=r,o="
      exclude:
        - "*/late"
    handouts:
      mode: "a+rX"

Keys that are YAML timestamps introduce dated policies; any other key that is
not reserved names a child path.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("mode: 'u=rwX'\\nsub:\\n  group: staff\\n")
>>> sorted(config)
['mode', 'sub']
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from perm_watchdog.config.fragment import validate_tree
from perm_watchdog.errors import WatchdogConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME: str = "_watchdog.yml"


class ConfigLoader:
    """Loads and validates watchdog configuration trees.

    Parameters
    ----------
    validate:
        When ``True`` (default) every node is validated at load time, so a
        malformed document fails before any file is touched.
    """

    def __init__(self, validate: bool = True) -> None:
        self._validate = validate

    def load(self, config_path: str | Path) -> dict[Any, Any]:
        """Load a watchdog document from disk.

        Raises
        ------
        FileNotFoundError
            If the config file does not exist.
        WatchdogConfigError
            If the YAML cannot be parsed or the tree is malformed.
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Watchdog config not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as fh:
                raw = yaml.safe_load(fh)
        except yaml.YAMLError as exc:
            raise WatchdogConfigError(
                f"Failed to parse YAML: {exc}", str(config_path)
            ) from exc

        return self._build(raw, config_path=str(config_path))

    def load_string(self, yaml_content: str, config_path: str | None = None) -> dict[Any, Any]:
        """Load a watchdog document from a YAML string."""
        try:
            raw = yaml.safe_load(yaml_content)
        except yaml.YAMLError as exc:
            raise WatchdogConfigError(
                f"Failed to parse YAML string: {exc}", config_path
            ) from exc
        return self._build(raw, config_path=config_path)

    def load_from_dict(
        self,
        config: dict[Any, Any],
        config_path: str | None = None,
    ) -> dict[Any, Any]:
        """Validate an already-parsed configuration tree."""
        return self._build(config, config_path=config_path)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _build(self, raw: object, config_path: str | None) -> dict[Any, Any]:
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            raise WatchdogConfigError(
                "Watchdog config must be a YAML mapping (dict).", config_path
            )

        if self._validate:
            try:
                node_count = validate_tree(raw)
            except WatchdogConfigError as exc:
                raise WatchdogConfigError(str(exc), config_path) from exc
            logger.info(
                "Loaded watchdog config with %d declared nodes from %s",
                node_count,
                config_path or "<dict>",
            )
        return raw
