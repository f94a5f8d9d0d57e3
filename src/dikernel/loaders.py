from __future__ import annotations

import inspect
import logging
import types
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic_settings import BaseSettings

from dikernel.defaults import DEFAULT_AUTOREGISTER_IGNORES
from dikernel.generics import is_open_generic
from dikernel.model import INJECT_CONSTRUCTOR, ComponentModel

logger = logging.getLogger(__name__)


@runtime_checkable
class LazyComponentLoader(Protocol):
    """Create component registrations on demand for unknown keys or services."""

    def load(
        self,
        key: str | None,
        service: Any,
        arguments: Mapping[Any, Any] | None,
    ) -> ComponentModel | None:
        """Return a model to register for ``key``/``service``, or ``None`` to pass.

        Args:
            key: Requested component key, if the lookup was by key.
            service: Requested service type.
            arguments: Ambient arguments of the current request, if any.

        """


class ConcreteTypeLoader:
    """Register concrete classes the first time they are requested.

    Abstract classes, protocols, open generics, and the ignored builtin types
    are never registered. Pydantic settings classes are registered without
    constructor injection so their values come from the environment.
    """

    def __init__(self, ignores: frozenset[type[Any]] | set[type[Any]] | None = None) -> None:
        self._ignores = DEFAULT_AUTOREGISTER_IGNORES if ignores is None else frozenset(ignores)

    def load(
        self,
        key: str | None,
        service: Any,
        arguments: Mapping[Any, Any] | None,
    ) -> ComponentModel | None:
        if service is Any or not is_runtime_class(service):
            return None
        if service in self._ignores or service.__module__ == "builtins":
            return None
        if inspect.isabstract(service) or getattr(service, "_is_protocol", False):
            return None
        if is_open_generic(service):
            return None

        if is_pydantic_settings_subclass(service):
            logger.debug("Autoregistering settings class %s", service.__qualname__)
            return ComponentModel.create(service, extended_properties={INJECT_CONSTRUCTOR: False})

        logger.debug("Autoregistering concrete class %s", service.__qualname__)
        return ComponentModel.create(service)


def is_runtime_class(candidate: object) -> bool:
    """Return true when candidate is a runtime class safe for class-only operations."""
    return isinstance(candidate, type) and not isinstance(candidate, types.GenericAlias)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether a class is a ``pydantic_settings.BaseSettings`` model."""
    if not is_runtime_class(candidate):
        return False
    try:
        return issubclass(candidate, BaseSettings)
    except TypeError:
        return False
