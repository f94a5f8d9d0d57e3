from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

from dikernel.context import CreationContext
from dikernel.conversion import ConversionManager
from dikernel.defaults import default_activator
from dikernel.exceptions import DIKernelComponentNotFoundError, DIKernelInvalidRegistrationError
from dikernel.generics import is_open_generic, service_definition
from dikernel.handler import GenericHandler, Handler, HandlerState
from dikernel.loaders import ConcreteTypeLoader, is_runtime_class
from dikernel.model import ComponentModel
from dikernel.resolver import DependencyResolver

if TYPE_CHECKING:
    from dikernel.defaults import Activator
    from dikernel.dependency import DependencyModel
    from dikernel.generics import MatchingStrategy
    from dikernel.loaders import LazyComponentLoader
    from dikernel.resolver import DependencyResolvedCallback
    from dikernel.resolvers import SubDependencyResolver

logger = logging.getLogger(__name__)

_refreshing: ContextVar[bool] = ContextVar("dikernel_refreshing_handler_states", default=False)


class Kernel:
    """Registry of components and entry point for resolution.

    Registrations are copy-on-write: every mutation swaps the handler tuple and
    the name index under a lock, so resolutions running on other threads keep
    iterating the view they started with. Each ``resolve`` call gets its own
    ``CreationContext``.

    Args:
        activator: Builds an instance from an implementation and its resolved
            keyword arguments.
        converter: Converts inline parameter values; a pydantic backed
            ``ConversionManager`` by default.
        autoregister_concrete_types: Register concrete classes the first time
            they are requested or depended on.
        on_dependency_resolving: Observer called with
            ``(model, dependency, value)`` after every resolved dependency.

    """

    __slots__ = (
        "_activator",
        "_converter",
        "_handlers",
        "_handlers_by_name",
        "_lazy_loaders",
        "_listeners",
        "_lock",
        "resolver",
    )

    def __init__(
        self,
        *,
        activator: Activator = default_activator,
        converter: ConversionManager | None = None,
        autoregister_concrete_types: bool = False,
        on_dependency_resolving: DependencyResolvedCallback | None = None,
    ) -> None:
        self._lock = threading.RLock()
        self._activator = activator
        self._converter = converter or ConversionManager()
        self._handlers: tuple[Handler, ...] = ()
        self._handlers_by_name: dict[str, Handler] = {}
        self._lazy_loaders: tuple[LazyComponentLoader, ...] = ()
        self._listeners: tuple[DependencyResolvedCallback, ...] = ()
        if on_dependency_resolving is not None:
            self._listeners = (on_dependency_resolving,)

        self.resolver = DependencyResolver(self, self._converter, self._raise_dependency_resolving)

        if autoregister_concrete_types:
            self.add_lazy_loader(ConcreteTypeLoader())

    @property
    def activator(self) -> Activator:
        return self._activator

    @property
    def converter(self) -> ConversionManager:
        return self._converter

    @property
    def handlers(self) -> tuple[Handler, ...]:
        return self._handlers

    def register(self, model: ComponentModel) -> Handler:
        """Add a component and recompute every handler's state.

        Returns:
            The handler created for ``model``.

        Raises:
            DIKernelInvalidRegistrationError: If a component with the same name
                is already registered.

        """
        with self._lock:
            if model.name in self._handlers_by_name:
                msg = f"Component '{model.name}' is already registered."
                raise DIKernelInvalidRegistrationError(msg)

            handler_class = GenericHandler if is_open_generic(model.implementation) else Handler
            handler = handler_class(model, self)

            handlers_by_name = dict(self._handlers_by_name)
            handlers_by_name[model.name] = handler
            self._handlers_by_name = handlers_by_name
            self._handlers = (*self._handlers, handler)

            logger.debug(
                "Registered component '%s' providing %d service(s) with %s",
                model.name,
                len(model.services),
                handler_class.__name__,
            )
            self._refresh_handler_states()
        return handler

    def add_component(
        self,
        implementation: Any,
        *,
        service: Any | tuple[Any, ...] | None = None,
        name: str | None = None,
        parameters: Mapping[Any, Any] | None = None,
        custom_dependencies: Mapping[Any, Any] | None = None,
        matching_strategy: MatchingStrategy | None = None,
        extended_properties: Mapping[str, Any] | None = None,
    ) -> Handler:
        """Register ``implementation`` as a component.

        Args:
            implementation: Class to build, possibly an open generic.
            service: Service contract(s) the component provides; defaults to
                the implementation itself.
            name: Unique component key; defaults to the implementation's
                qualified name.
            parameters: Inline values keyed by dependency name or by type.
                Strings of the form ``"${key}"`` reference another component.
            custom_dependencies: Typed inline values used as-is.
            matching_strategy: Chooses the generic arguments used to close an
                open generic implementation.
            extended_properties: Free-form metadata stored on the model.

        """
        model = ComponentModel.create(
            implementation,
            service=service,
            name=name,
            parameters=parameters,
            custom_dependencies=custom_dependencies,
            matching_strategy=matching_strategy,
            extended_properties=extended_properties,
        )
        return self.register(model)

    def has_component(self, name_or_service: Any) -> bool:
        if isinstance(name_or_service, str):
            return name_or_service in self._handlers_by_name
        return bool(self.get_handlers(name_or_service))

    def get_handler(self, name: str) -> Handler | None:
        return self._handlers_by_name.get(name)

    def get_handlers(self, service: Any) -> tuple[Handler, ...]:
        """Return every handler providing ``service``, in registration order.

        Components registered for exactly ``service`` come first, then open
        generic components whose service definition matches a closed request.
        """
        handlers = self._handlers
        exact = [handler for handler in handlers if _provides_exactly(handler, service)]
        definition = service_definition(service)
        if definition is service:
            return tuple(exact)
        generic = [
            handler
            for handler in handlers
            if isinstance(handler, GenericHandler)
            and handler not in exact
            and _provides_definition(handler, definition)
        ]
        return (*exact, *generic)

    def get_handler_for(self, service: Any) -> Handler | None:
        """Return the first valid handler for ``service``, else the first one at all."""
        handlers = self.get_handlers(service)
        for handler in handlers:
            if handler.current_state is HandlerState.VALID:
                return handler
        return handlers[0] if handlers else None

    def handler_provides(self, handler: Handler, service: Any) -> bool:
        if service is Any:
            return True
        if _provides_exactly(handler, service):
            return True
        definition = service_definition(service)
        return (
            definition is not service
            and isinstance(handler, GenericHandler)
            and _provides_definition(handler, definition)
        )

    def load_handler_by_key(
        self,
        key: str,
        service: Any,
        arguments: Mapping[Any, Any] | None,
    ) -> Handler | None:
        """Return the handler named ``key``, consulting lazy loaders on a miss."""
        handler = self.get_handler(key)
        if handler is not None or not self._lazy_loaders or _refreshing.get():
            return handler
        with self._lock:
            handler = self.get_handler(key)
            if handler is None:
                self._load_lazily(key, service, arguments)
                handler = self.get_handler(key)
        return handler

    def load_handler_by_type(
        self,
        key: str | None,
        service: Any,
        arguments: Mapping[Any, Any] | None,
    ) -> Handler | None:
        """Return a handler providing ``service``, consulting lazy loaders on a miss."""
        handler = self.get_handler_for(service)
        if handler is not None or not self._lazy_loaders or _refreshing.get():
            return handler
        with self._lock:
            handler = self.get_handler_for(service)
            if handler is None:
                self._load_lazily(key, service, arguments)
                handler = self.get_handler_for(service)
        return handler

    def resolve(
        self,
        service: Any,
        *,
        key: str | None = None,
        arguments: Mapping[Any, Any] | None = None,
    ) -> Any:
        """Build an instance of ``service``.

        Args:
            service: Requested service type, possibly a closed generic alias.
            key: Resolve the component with this name instead of looking the
                service up.
            arguments: Ambient values keyed by dependency name or by type. They
                only reach the requested component's own dependencies.

        Raises:
            DIKernelComponentNotFoundError: If no component matches.

        """
        if key is None and is_runtime_class(service) and issubclass(service, Kernel):
            return self

        if key is not None:
            handler = self.load_handler_by_key(key, service, arguments)
        else:
            handler = self.load_handler_by_type(None, service, arguments)
        if handler is None:
            logger.debug("No component found for service %r (key=%r)", service, key)
            raise DIKernelComponentNotFoundError(service, key)

        context = CreationContext(service, additional_arguments=arguments)
        return handler.resolve_component(context)

    def add_sub_resolver(self, sub_resolver: SubDependencyResolver) -> None:
        """Append a sub-resolver; later resolvers are consulted after earlier ones."""
        with self._lock:
            self.resolver.add_sub_resolver(sub_resolver)
            self._refresh_handler_states()

    def remove_sub_resolver(self, sub_resolver: SubDependencyResolver) -> None:
        with self._lock:
            self.resolver.remove_sub_resolver(sub_resolver)
            self._refresh_handler_states(reset=True)

    def add_lazy_loader(self, loader: LazyComponentLoader) -> None:
        with self._lock:
            self._lazy_loaders = (*self._lazy_loaders, loader)

    def add_dependency_resolving_listener(self, listener: DependencyResolvedCallback) -> None:
        with self._lock:
            self._listeners = (*self._listeners, listener)

    def remove_dependency_resolving_listener(self, listener: DependencyResolvedCallback) -> None:
        with self._lock:
            self._listeners = tuple(
                existing for existing in self._listeners if existing is not listener
            )

    def _raise_dependency_resolving(
        self,
        model: ComponentModel,
        dependency: DependencyModel,
        value: Any,
    ) -> None:
        for listener in self._listeners:
            listener(model, dependency, value)

    def _load_lazily(
        self,
        key: str | None,
        service: Any,
        arguments: Mapping[Any, Any] | None,
    ) -> Handler | None:
        for loader in self._lazy_loaders:
            model = loader.load(key, service, arguments)
            if model is None or model.name in self._handlers_by_name:
                continue
            logger.debug(
                "Lazy loader %s supplied component '%s'",
                type(loader).__name__,
                model.name,
            )
            return self.register(model)
        return None

    def _refresh_handler_states(self, *, reset: bool = False) -> None:
        # States only depend on other handlers' states, so this converges in
        # at most one round per handler.
        token = _refreshing.set(True)
        try:
            handlers = self._handlers
            if reset:
                for handler in handlers:
                    handler.reset_state()
            for _ in range(len(handlers) + 1):
                changed = False
                for handler in handlers:
                    changed = handler.refresh_state() or changed
                if not changed:
                    break
        finally:
            _refreshing.reset(token)

    def __repr__(self) -> str:
        return f"Kernel(components={len(self._handlers)})"


def _provides_exactly(handler: Handler, service: Any) -> bool:
    return any(provided == service for provided in handler.model.services)


def _provides_definition(handler: Handler, definition: Any) -> bool:
    return any(service_definition(provided) == definition for provided in handler.model.services)

