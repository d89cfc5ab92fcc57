"""Registry for discovering and instantiating connectors."""

from pathlib import Path
from typing import Optional, Type

from hubspot_sync.connectors.base import BaseConnector
from hubspot_sync.connectors.hubspot import HubSpotConnector
from hubspot_sync.errors import ConfigError
from hubspot_sync.models.config import ConnectorConfig


class ConnectorRegistry:
    """Discovers and provides source connectors, with the config model each one takes."""

    _connectors: dict[str, tuple[Type[BaseConnector], Type[ConnectorConfig]]] = {
        "hubspot": (HubSpotConnector, ConnectorConfig),
    }

    @classmethod
    def _lookup(cls, source_id: str) -> tuple[Type[BaseConnector], Type[ConnectorConfig]]:
        entry = cls._connectors.get(source_id.lower())
        if not entry:
            raise ConfigError(f"Unknown source: {source_id}. Available: {cls.available_sources()}")
        return entry

    @classmethod
    def get(cls, source_id: str, **kwargs) -> BaseConnector:
        """Get a connector instance for the given source. kwargs passed to connector __init__."""
        connector_cls, _ = cls._lookup(source_id)
        return connector_cls(**kwargs)

    @classmethod
    def from_config(
        cls,
        source_id: str,
        config_path: Optional[Path] = None,
        environ: Optional[dict[str, str]] = None,
        **kwargs,
    ) -> BaseConnector:
        """
        Build an initialized connector for `source_id`.

        Config is read from the YAML file at `config_path` when given, otherwise
        from the source's environment variables. Raises ConfigError for an
        unknown source or invalid config.
        """
        connector_cls, config_cls = cls._lookup(source_id)
        if config_path is not None:
            config = config_cls.from_yaml(config_path)
        else:
            config = config_cls.from_env(environ)
        return connector_cls(config=config, **kwargs)

    @classmethod
    def available_sources(cls) -> list[str]:
        """Return list of available source identifiers."""
        return list(cls._connectors.keys())
