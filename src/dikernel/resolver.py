from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import TYPE_CHECKING, Any, TypeAlias

from dikernel.context import CreationContext
from dikernel.exceptions import (
    DIKernelCircularDependencyError,
    DIKernelMissingDependencyError,
    DIKernelUnresolvedDependencyError,
)
from dikernel.generics import contains_typevar
from dikernel.handler import HandlerState
from dikernel.loaders import is_runtime_class
from dikernel.naming import qualified_name
from dikernel.parameters import (
    extract_component_key,
    is_reference,
    looks_like_reference,
    obtain_parameter,
)
from dikernel.resolvers import SubDependencyResolver, SubResolverChain

if TYPE_CHECKING:
    from dikernel.conversion import ConversionManager
    from dikernel.dependency import DependencyModel
    from dikernel.handler import Handler
    from dikernel.kernel import Kernel
    from dikernel.model import ComponentModel

logger = logging.getLogger(__name__)

DependencyResolvedCallback: TypeAlias = Callable[["ComponentModel", "DependencyModel", Any], None]
"""Observer called with ``(model, dependency, final_value)`` after each resolution."""


class DependencyResolver:
    """Decide which value to inject for each dependency of a component.

    Resolution consults, strictly in order:

    1. the creation context (ambient arguments of the current request);
    2. the handler of the requesting component, unless it is the requester;
    3. the requester (parent resolver), if any;
    4. the registered sub-resolvers, in registration order;
    5. the kernel: a service lookup first, then an inline parameter value.

    The resolver keeps no per-call state; ``can_resolve`` follows the same
    order as ``resolve`` so speculative checks agree with real resolution.
    """

    def __init__(
        self,
        kernel: Kernel,
        converter: ConversionManager,
        on_resolved: DependencyResolvedCallback,
    ) -> None:
        self._kernel = kernel
        self._converter = converter
        self._on_resolved = on_resolved
        self._sub_resolvers = SubResolverChain()

    @property
    def sub_resolvers(self) -> tuple[SubDependencyResolver, ...]:
        return self._sub_resolvers.snapshot()

    def add_sub_resolver(self, sub_resolver: SubDependencyResolver) -> None:
        self._sub_resolvers.add(sub_resolver)

    def remove_sub_resolver(self, sub_resolver: SubDependencyResolver) -> None:
        self._sub_resolvers.remove(sub_resolver)

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        """Return whether ``resolve`` would produce a value for ``dependency``."""
        if context is not None and context.can_resolve(context, requester, model, dependency):
            return True

        handler = self._kernel.get_handler(model.name)
        if (
            handler is not None
            and handler is not requester
            and handler.can_resolve(context, requester, model, dependency)
        ):
            return True

        if requester is not None and requester.can_resolve(context, requester, model, dependency):
            return True

        if any(
            sub_resolver.can_resolve(context, requester, model, dependency)
            for sub_resolver in self._sub_resolvers.snapshot()
        ):
            return True

        return self._can_resolve_service_dependency(
            context,
            model,
            dependency,
        ) or self._can_resolve_parameter_dependency(model, dependency)

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        """Resolve the value to inject for ``dependency`` of ``model``.

        A ``None`` result is replaced by the dependency's default value when it
        declares one. Observers are notified once with the final value.

        Args:
            context: Creation context of the current resolution.
            requester: Parent resolver, usually the handler building ``model``.
            model: Component that owns the dependency.
            dependency: Dependency being satisfied.

        Returns:
            The value to inject, possibly ``None`` for optional dependencies.

        Raises:
            DIKernelCircularDependencyError: If only components already being
                resolved could satisfy the dependency.
            DIKernelMissingDependencyError: If no component exists for the
                dependency's type.
            DIKernelUnresolvedDependencyError: If a mandatory dependency
                resolved to ``None``.

        """
        value = self._resolve_core(context, requester, model, dependency)
        if value is None:
            if dependency.has_default:
                value = dependency.default_value
            elif not dependency.is_optional:
                logger.debug(
                    "Mandatory dependency '%s' of '%s' resolved to None",
                    dependency.key,
                    model.name,
                )
                raise DIKernelUnresolvedDependencyError(
                    model.name,
                    model.implementation,
                    dependency.key,
                    dependency.target_item_type,
                )

        self._on_resolved(model, dependency, value)
        return value

    def _resolve_core(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        if context is not None and context.can_resolve(context, requester, model, dependency):
            return context.resolve(context, requester, model, dependency)

        handler = self._kernel.get_handler(model.name)
        if (
            handler is not None
            and handler is not requester
            and handler.can_resolve(context, requester, model, dependency)
        ):
            return handler.resolve(context, requester, model, dependency)

        if requester is not None and requester.can_resolve(context, requester, model, dependency):
            return requester.resolve(context, requester, model, dependency)

        for sub_resolver in self._sub_resolvers.snapshot():
            if sub_resolver.can_resolve(context, requester, model, dependency):
                return sub_resolver.resolve(context, requester, model, dependency)

        value = self._resolve_service_dependency(context, model, dependency)
        if value is None:
            value = self._resolve_parameter_dependency(context, model, dependency)
        return value

    def _resolve_service_dependency(
        self,
        context: CreationContext | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        parameter = obtain_parameter(dependency, model)
        if parameter is not None:
            if not looks_like_reference(parameter.value):
                return None
            dependency.redirect(extract_component_key(parameter.value, parameter.name))

        target_type = dependency.target_item_type
        if self._is_kernel_type(target_type):
            return self._kernel

        handler = self._handler_by_key(dependency)
        if handler is None:
            handler = self._kernel.load_handler_by_type(
                dependency.key,
                target_type,
                _additional_arguments(context),
            )
            if handler is None:
                if dependency.has_default:
                    return dependency.default_value
                logger.debug(
                    "No component provides %s for '%s'",
                    qualified_name(target_type),
                    model.name,
                )
                raise DIKernelMissingDependencyError(model.name, target_type, model.implementation)

            handler = self._first_inactive_handler(handler, target_type, context)
            if handler is None:
                if dependency.has_default:
                    return dependency.default_value
                logger.debug(
                    "Only active components provide %s for '%s'",
                    qualified_name(target_type),
                    model.name,
                )
                raise DIKernelCircularDependencyError(model.name, target_type, model.implementation)

        return handler.resolve_component(self._rebuild_context_for_parameter(context, target_type))

    def _resolve_parameter_dependency(
        self,
        context: CreationContext | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        parameter = obtain_parameter(dependency, model)
        if parameter is None:
            return None
        with self._converter.context.scope(model, context):
            return self._converter.perform_conversion(
                parameter.raw_value,
                dependency.target_item_type,
            )

    def _handler_by_key(self, dependency: DependencyModel) -> Handler | None:
        if dependency.key is None:
            return None
        handler = self._kernel.get_handler(dependency.key)
        if handler is None:
            return None
        if dependency.is_redirected or self._kernel.handler_provides(
            handler,
            dependency.target_item_type,
        ):
            return handler
        return None

    def _first_inactive_handler(
        self,
        handler: Handler,
        service: Any,
        context: CreationContext | None,
    ) -> Handler | None:
        if not handler.is_being_resolved_in_context(context):
            return handler
        for candidate in self._kernel.get_handlers(service):
            if not candidate.is_being_resolved_in_context(context):
                return candidate
        return None

    def _rebuild_context_for_parameter(
        self,
        current: CreationContext | None,
        parameter_type: Any,
    ) -> CreationContext:
        if current is None:
            return CreationContext(parameter_type)
        if contains_typevar(parameter_type):
            return current
        return current.child(parameter_type)

    def _can_resolve_parameter_dependency(
        self,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        return obtain_parameter(dependency, model) is not None

    def _can_resolve_service_dependency(
        self,
        context: CreationContext | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        return (
            self._can_resolve_service_dependency_mandatory(dependency, model, context)
            or dependency.has_default
        )

    def _can_resolve_service_dependency_mandatory(
        self,
        dependency: DependencyModel,
        model: ComponentModel,
        context: CreationContext | None,
    ) -> bool:
        target_type = dependency.target_item_type
        if self._is_kernel_type(target_type):
            return True

        if self._has_component_in_valid_state(
            dependency.key,
            target_type,
            context,
            redirected=dependency.is_redirected,
        ):
            return True

        parameter = obtain_parameter(dependency, model)
        if parameter is not None:
            if not is_reference(parameter.value):
                return False
            key = extract_component_key(parameter.value, parameter.name)
            return self._has_component_in_valid_state(key, target_type, context, redirected=True)

        if target_type is not None:
            return self._has_any_component_in_valid_state(context, target_type, dependency.key)
        return False

    def _has_component_in_valid_state(
        self,
        key: str | None,
        service: Any,
        context: CreationContext | None,
        *,
        redirected: bool = False,
    ) -> bool:
        if key is None:
            return False
        handler = self._kernel.load_handler_by_key(key, service, _additional_arguments(context))
        if handler is None:
            return False
        if not redirected and not self._kernel.handler_provides(handler, service):
            return False
        return _is_handler_valid(handler) and not handler.is_being_resolved_in_context(context)

    def _has_any_component_in_valid_state(
        self,
        context: CreationContext | None,
        service: Any,
        key: str | None,
    ) -> bool:
        first_handler = self._kernel.load_handler_by_type(
            key,
            service,
            _additional_arguments(context),
        )
        if first_handler is None:
            return False
        if not first_handler.is_being_resolved_in_context(context) and _is_handler_valid(
            first_handler,
        ):
            return True

        return any(
            not handler.is_being_resolved_in_context(context) and _is_handler_valid(handler)
            for handler in self._kernel.get_handlers(service)
        )

    def _is_kernel_type(self, target_type: Any) -> bool:
        from dikernel.kernel import Kernel  # noqa: PLC0415

        return is_runtime_class(target_type) and issubclass(target_type, Kernel)


def _additional_arguments(context: CreationContext | None) -> Mapping[Any, Any] | None:
    if context is None:
        return None
    return context.additional_arguments


def _is_handler_valid(handler: Handler | None) -> bool:
    if handler is None:
        return False
    return handler.current_state is HandlerState.VALID
