"""
Plugin types and errors for certscope.

Defines the errors raised by the collector registry and the descriptive
record it returns for registered collectors.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


class PluginError(Exception):
    """Base exception for plugin errors."""

    pass


class PluginNotFoundError(PluginError):
    """No collector is registered under the requested name."""

    def __init__(self, name: str, available: list[str] | None = None) -> None:
        self.name = name
        message = f"Collector '{name}' not found"
        if available:
            message = f"{message} (available: {', '.join(available)})"
        super().__init__(message)


class InvalidPluginError(PluginError):
    """A factory or instance does not satisfy the collector contract."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Collector '{name}' is invalid: {reason}")


@dataclass
class CollectorInfo:
    """
    Description of a registered collector.

    Attributes:
        name: Registration name
        description: Human-readable description
        required_params: Configuration keys the collector requires
        module_path: Module defining the collector class
        is_loaded: Whether an instance has been created
    """

    name: str
    description: str
    required_params: tuple[str, ...] = field(default_factory=tuple)
    module_path: str = ""
    is_loaded: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "required_params": list(self.required_params),
            "module_path": self.module_path,
            "is_loaded": self.is_loaded,
        }
