from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING, Any

from dikernel.context import CreationContext
from dikernel.dependency import DependencyModel, extract_dependencies
from dikernel.exceptions import DIKernelDependencyExtractionError, DIKernelHandlerError
from dikernel.generics import close_implementation, contains_typevar, typevar_map_for

if TYPE_CHECKING:
    from dikernel.kernel import Kernel
    from dikernel.model import ComponentModel
    from dikernel.resolvers import SubDependencyResolver

logger = logging.getLogger(__name__)


class HandlerState(Enum):
    """Whether a handler can currently build its component."""

    VALID = "valid"
    """Every mandatory dependency can be satisfied."""

    WAITING_DEPENDENCY = "waiting_dependency"
    """At least one mandatory dependency has no valid provider yet."""

    INVALID = "invalid"
    """The component can never be built, e.g. its signature cannot be read."""


class Handler:
    """Own one registered component and build it on request.

    A handler is also a sub-resolver: it supplies the typed inline values
    (``custom_dependencies``) attached to its own registration.
    """

    def __init__(self, model: ComponentModel, kernel: Kernel) -> None:
        self.model = model
        self.kernel = kernel
        self._state = HandlerState.WAITING_DEPENDENCY
        self._invalid_reason: str | None = None
        self._dependencies: tuple[DependencyModel, ...] | None = None

    @property
    def current_state(self) -> HandlerState:
        return self._state

    @property
    def invalid_reason(self) -> str | None:
        return self._invalid_reason

    @property
    def dependencies(self) -> tuple[DependencyModel, ...]:
        if self._dependencies is None:
            if not self.model.inject_constructor:
                self._dependencies = ()
            else:
                self._dependencies = extract_dependencies(self.model.implementation)
        return self._dependencies

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        found, _ = self.model.find_custom_dependency(
            dependency.lookup_keys,
            dependency.target_item_type,
        )
        return found

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        _, value = self.model.find_custom_dependency(
            dependency.lookup_keys,
            dependency.target_item_type,
        )
        return value

    def is_being_resolved_in_context(self, context: CreationContext | None) -> bool:
        return context is not None and context.is_resolving(self)

    def resolve_component(self, context: CreationContext) -> Any:
        """Build the component, resolving each constructor dependency.

        Optional dependencies the kernel cannot satisfy are left to their
        Python defaults (or ``None``). The handler stays on the context's
        active stack while its dependencies resolve.

        Raises:
            DIKernelHandlerError: If the handler is invalid or its
                implementation cannot be closed.
            DIKernelResolutionCycleError: If the handler is already active on
                ``context``.

        """
        if self._state is HandlerState.INVALID:
            msg = f"Component '{self.model.name}' cannot be created: {self._invalid_reason}"
            raise DIKernelHandlerError(msg)

        resolver = self.kernel.resolver
        with context.enter(self):
            implementation = self.close_implementation(context)
            arguments: dict[str, Any] = {}
            for dependency in self.dependencies_for(implementation):
                if dependency.is_optional and not resolver.can_resolve(
                    context,
                    self,
                    self.model,
                    dependency,
                ):
                    if not dependency.has_default:
                        arguments[dependency.original_key] = None
                    continue
                arguments[dependency.original_key] = resolver.resolve(
                    context,
                    self,
                    self.model,
                    dependency,
                )
            logger.debug(
                "Activating component '%s' with %d argument(s)",
                self.model.name,
                len(arguments),
            )
            return self.kernel.activator(implementation, arguments)

    def close_implementation(self, context: CreationContext) -> Any:
        return self.model.implementation

    def dependencies_for(self, implementation: Any) -> tuple[DependencyModel, ...]:
        return self.dependencies

    def refresh_state(self) -> bool:
        """Recompute the state against the kernel's current registrations.

        The handler counts as active while checking, so it can never satisfy
        its own dependencies.

        Returns:
            ``True`` when the state changed.

        """
        previous = self._state
        try:
            dependencies = self._state_dependencies()
        except DIKernelDependencyExtractionError as error:
            self._state = HandlerState.INVALID
            self._invalid_reason = str(error)
        else:
            resolver = self.kernel.resolver
            context = CreationContext.empty()
            with context.enter(self):
                satisfied = all(
                    resolver.can_resolve(context, self, self.model, dependency)
                    for dependency in dependencies
                    if not dependency.is_optional
                )
            self._state = HandlerState.VALID if satisfied else HandlerState.WAITING_DEPENDENCY

        if self._state is previous:
            return False
        logger.debug(
            "Handler '%s' changed state: %s -> %s",
            self.model.name,
            previous.value,
            self._state.value,
        )
        return True

    def reset_state(self) -> None:
        """Return a non-invalid handler to ``WAITING_DEPENDENCY`` before a full recompute."""
        if self._state is not HandlerState.INVALID:
            self._state = HandlerState.WAITING_DEPENDENCY

    def _state_dependencies(self) -> tuple[DependencyModel, ...]:
        return self.dependencies

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.model.name!r}, state={self._state.value})"


class GenericHandler(Handler):
    """Handler for open generic implementations.

    Each resolve closes the implementation for the context's requested type
    with the component's matching strategy; dependencies are extracted once
    per closed type with the TypeVars substituted.
    """

    def __init__(self, model: ComponentModel, kernel: Kernel) -> None:
        super().__init__(model, kernel)
        self._closed_dependencies: dict[Any, tuple[DependencyModel, ...]] = {}

    def close_implementation(self, context: CreationContext) -> Any:
        return close_implementation(
            context.requested_type,
            self.model.implementation,
            self.model.matching_strategy,
            component_name=self.model.name,
        )

    def dependencies_for(self, implementation: Any) -> tuple[DependencyModel, ...]:
        cached = self._closed_dependencies.get(implementation)
        if cached is not None:
            return cached
        dependencies = extract_dependencies(
            implementation,
            typevar_map=typevar_map_for(implementation),
        )
        return self._closed_dependencies.setdefault(implementation, dependencies)

    def _state_dependencies(self) -> tuple[DependencyModel, ...]:
        # TypeVar-typed dependencies are only known once the implementation is closed.
        return tuple(
            dependency
            for dependency in self.dependencies
            if not contains_typevar(dependency.target_item_type)
        )
