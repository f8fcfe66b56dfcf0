"""Package for Concrete Implementations of Multiform providers"""

import collections
import importlib
import logging

from multiform.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


DATABASE_PROVIDERS = {
    "memory": "multiform.adapters.repository.memory.MemoryProvider",
    "postgresql": "multiform.adapters.repository.sqlalchemy.PostgresqlProvider",
    "sqlite": "multiform.adapters.repository.sqlalchemy.SqliteProvider",
}


class Providers(collections.abc.Mapping):
    """Providers built from the `databases` section of a configuration.

    Providers are initialized on first access, so constructing this object
    does not open connections.
    """

    def __init__(self, config):
        self.config = config
        self._providers = None

    def __getitem__(self, key):
        if self._providers is None:
            self._initialize()

        try:
            return self._providers[key]
        except KeyError:
            raise ConfigurationError(f"No Provider registered with name {key}")

    def __iter__(self):
        if self._providers is None:
            self._initialize()
        return iter(self._providers)

    def __len__(self):
        if self._providers is None:
            self._initialize()
        return len(self._providers)

    def _initialize(self):
        """Read config and initialize providers"""
        configured_providers = self.config["databases"]
        provider_objects = {}

        if not isinstance(configured_providers, dict) or "default" not in configured_providers:
            raise ConfigurationError("You must define a 'default' provider")

        for provider_name, conn_info in configured_providers.items():
            try:
                provider_full_path = DATABASE_PROVIDERS[conn_info["provider"]]
            except KeyError:
                raise ConfigurationError(
                    f"Unknown provider `{conn_info.get('provider')}` for `{provider_name}`"
                )

            provider_module, provider_class = provider_full_path.rsplit(".", maxsplit=1)

            try:
                provider_cls = getattr(
                    importlib.import_module(provider_module), provider_class
                )
            except ImportError as exc:
                raise ConfigurationError(
                    f"Provider `{conn_info['provider']}` needs extra dependencies: {exc}"
                ) from exc

            provider = provider_cls(provider_name, conn_info)

            # Initialize a connection to check if everything is ok
            if not provider.is_alive():
                raise ConfigurationError(
                    f"Could not connect to database at {conn_info.get('database_uri')}"
                )

            logger.debug(f"Initialized provider {provider}")
            provider_objects[provider_name] = provider

        self._providers = provider_objects
