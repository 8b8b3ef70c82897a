"""
Collector registry for certscope.

Maps collector names to collector classes and caches one instance per
name. Cached instances are read without locking; creating an instance
happens under a lock with a second check, so concurrent loads of the same
name always return the same object.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Mapping

from certscope.collectors import BUILTIN_COLLECTORS
from certscope.collectors.base import BaseCollector
from certscope.models import CertificateRecord
from certscope.plugins.base import (
    CollectorInfo,
    InvalidPluginError,
    PluginError,
    PluginNotFoundError,
)

logger = logging.getLogger(__name__)


class CollectorRegistry:
    """
    Central registry for collectors.

    Thread-safe registry that stores collector classes and provides
    access to lazily created, cached collector instances.
    """

    def __init__(self) -> None:
        """Initialize the registry."""
        self._factories: dict[str, type[BaseCollector]] = {}
        self._instances: dict[str, BaseCollector] = {}
        self._lock = threading.Lock()

    def register(
        self,
        factory: type[BaseCollector],
        name: str | None = None,
    ) -> CollectorInfo:
        """
        Register a collector class.

        Args:
            factory: BaseCollector subclass
            name: Registration name (default: the class's name attribute)

        Returns:
            CollectorInfo for the registered collector

        Raises:
            InvalidPluginError: If factory is not a usable collector class
            PluginError: If the name is already registered
        """
        label = name or getattr(factory, "name", None) or repr(factory)
        if not isinstance(factory, type) or not issubclass(factory, BaseCollector):
            raise InvalidPluginError(label, "not a BaseCollector subclass")

        plugin_name = name or factory.name
        if not plugin_name or plugin_name == BaseCollector.name:
            raise InvalidPluginError(label, "collector has no name")

        with self._lock:
            if plugin_name in self._factories:
                raise PluginError(f"Collector '{plugin_name}' is already registered")
            self._factories[plugin_name] = factory

        logger.debug(f"Registered collector {plugin_name}")
        return self._info(plugin_name, factory)

    def unregister(self, name: str) -> bool:
        """
        Unregister a collector and drop its cached instance.

        Returns:
            True if the collector was unregistered, False if not found
        """
        with self._lock:
            if name not in self._factories:
                return False
            del self._factories[name]
            self._instances.pop(name, None)
            return True

    def load(self, name: str) -> BaseCollector:
        """
        Get the cached collector instance, creating it on first use.

        Args:
            name: Registered collector name

        Returns:
            Collector instance (the same object on every call)

        Raises:
            PluginNotFoundError: If no collector has that name
            InvalidPluginError: If the instance violates the contract
        """
        instance = self._instances.get(name)
        if instance is not None:
            return instance

        with self._lock:
            instance = self._instances.get(name)
            if instance is not None:
                return instance

            factory = self._factories.get(name)
            if factory is None:
                raise PluginNotFoundError(name, sorted(self._factories))

            instance = factory()
            self._check_instance(name, instance)
            self._instances[name] = instance

        logger.debug(f"Loaded collector {name}")
        return instance

    def _check_instance(self, name: str, instance: Any) -> None:
        if not isinstance(instance, BaseCollector):
            raise InvalidPluginError(name, "factory did not produce a collector")
        if not getattr(instance, "name", None):
            raise InvalidPluginError(name, "collector must have a name")
        if not callable(getattr(instance, "collect", None)):
            raise InvalidPluginError(name, "collector must have a collect() method")

    async def execute(
        self,
        name: str,
        config: Mapping[str, Any],
    ) -> list[CertificateRecord]:
        """
        Load a collector and run it.

        Errors from loading or collecting propagate unchanged.

        Args:
            name: Registered collector name
            config: Collector configuration

        Returns:
            Certificate records
        """
        collector = self.load(name)
        return await collector.collect(config)

    def list_available(self) -> list[str]:
        """
        List registered collector names.

        Does not instantiate anything or change the cache.

        Returns:
            Sorted collector names
        """
        with self._lock:
            names = list(self._factories)
        return sorted(names)

    def describe(self, name: str | None = None) -> CollectorInfo | list[CollectorInfo]:
        """
        Describe one collector, or all of them.

        Args:
            name: Collector name (default: all collectors)

        Returns:
            CollectorInfo, or a list of them sorted by name

        Raises:
            PluginNotFoundError: If name is given and not registered
        """
        if name is None:
            with self._lock:
                factories = sorted(self._factories.items())
            return [self._info(n, factory) for n, factory in factories]

        factory = self._factories.get(name)
        if factory is None:
            raise PluginNotFoundError(name, self.list_available())
        return self._info(name, factory)

    def _info(self, name: str, factory: type[BaseCollector]) -> CollectorInfo:
        return CollectorInfo(
            name=name,
            description=factory.description,
            required_params=tuple(factory.required_params),
            module_path=factory.__module__,
            is_loaded=name in self._instances,
        )

    def is_registered(self, name: str) -> bool:
        return name in self._factories

    def is_loaded(self, name: str) -> bool:
        return name in self._instances

    @property
    def collector_count(self) -> int:
        """Get total number of registered collectors."""
        return len(self._factories)

    @property
    def loaded_count(self) -> int:
        """Get number of instantiated collectors."""
        return len(self._instances)


def register_builtin_collectors(registry: CollectorRegistry) -> None:
    """Register the built-in collector table with a registry."""
    for factory in BUILTIN_COLLECTORS:
        registry.register(factory)


# Global registry instance
_global_registry: CollectorRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> CollectorRegistry:
    """
    Get the global collector registry.

    The registry is created on first use with the built-in collectors
    registered.

    Returns:
        Global CollectorRegistry instance
    """
    global _global_registry
    with _registry_lock:
        if _global_registry is None:
            registry = CollectorRegistry()
            register_builtin_collectors(registry)
            _global_registry = registry
        return _global_registry
