from __future__ import annotations

from collections.abc import Sequence
from typing import Any, get_args

from dikernel.naming import definition_name, qualified_name


class DIKernelError(Exception):
    """Represent a base class for all dikernel-specific failures.

    Catch this type when you want to handle any kernel error path without
    matching each concrete exception class individually.
    """


class DIKernelInvalidRegistrationError(DIKernelError):
    """Signal invalid registration or kernel configuration.

    Raised by ``Kernel.register``/``Kernel.add_component`` for duplicate
    component names or unusable implementations, and by the sub-resolver chain
    when ``None`` is added.
    """


class DIKernelDependencyExtractionError(DIKernelError):
    """Signal that constructor dependencies of an implementation cannot be read."""

    def __init__(self, implementation: Any, error: Exception) -> None:
        self.implementation = implementation
        self.error = error
        super().__init__(
            f"Failed to extract dependencies of '{qualified_name(implementation)}': {error}",
        )


class DIKernelComponentNotFoundError(DIKernelError):
    """Signal a top-level resolve request that no component can satisfy.

    Typical fixes include registering a component for the service, enabling
    ``autoregister_concrete_types`` for concrete classes, or passing the right
    component ``key``.
    """

    def __init__(self, service: Any, key: str | None = None) -> None:
        self.service = service
        self.key = key
        if key is not None:
            msg = f"No component for key '{key}' was found."
        else:
            msg = (
                f"No component for supporting the service {qualified_name(service)} was found."
            )
        super().__init__(msg)


class DIKernelHandlerError(DIKernelError):
    """Signal that a handler could not build its component.

    These are construction-time failures: they concern one bad registration
    and leave the rest of the kernel usable, so callers may retry with a
    different component.
    """


class DIKernelGenericMatchingError(DIKernelHandlerError):
    """Signal that a closed generic request cannot close an open implementation.

    Raised when the matching strategy declines (returns ``None``) or returns a
    number of generic arguments different from the implementation's arity.
    """

    def __init__(self, requested_type: Any, implementation: Any, required_arity: int) -> None:
        self.requested_type = requested_type
        self.implementation = implementation
        self.requested_arity = generic_arity(requested_type)
        self.required_arity = required_arity
        super().__init__(
            f"Requested type {qualified_name(requested_type)} has {self.requested_arity} "
            f"generic parameter(s), whereas component implementation type "
            f"{qualified_name(implementation)} requires {required_arity}. "
            "This means that the kernel does not have enough information to properly "
            "create that component for you. This is most likely a bug in your "
            "registration code.",
        )


class DIKernelGenericConstraintError(DIKernelHandlerError):
    """Signal strategy-supplied generic arguments that violate TypeVar bounds."""

    def __init__(
        self,
        arguments: Sequence[Any],
        implementation: Any,
        component_name: str,
        strategy: Any,
    ) -> None:
        self.arguments = tuple(arguments)
        self.implementation = implementation
        self.component_name = component_name
        self.strategy = strategy
        types_text = ", ".join(qualified_name(argument) for argument in self.arguments)
        super().__init__(
            f"Types {types_text} don't satisfy generic constraints of implementation type "
            f"{definition_name(implementation)} of component '{component_name}'. "
            "This is likely a bug in the generic implementation matching strategy used "
            f"({strategy_name(strategy)})",
        )


class DIKernelConversionError(DIKernelHandlerError):
    """Signal that an inline parameter value cannot be converted to its target type."""

    def __init__(self, value: Any, target_type: Any, error: Exception) -> None:
        self.value = value
        self.target_type = target_type
        self.error = error
        super().__init__(
            f"Could not convert parameter value {value!r} to type "
            f"'{qualified_name(target_type)}': {error}",
        )


class DIKernelDependencyResolverError(DIKernelError):
    """Signal a failure of the dependency resolution logic itself."""


class DIKernelCircularDependencyError(DIKernelDependencyResolverError):
    """Signal that only components already being resolved can satisfy a dependency.

    Typical fix is providing an explicit override parameter (``${key}``) or an
    inline argument for the dependency.
    """

    def __init__(
        self,
        component_name: str,
        dependency_type: Any,
        implementation: Any | None = None,
    ) -> None:
        self.component_name = component_name
        self.dependency_type = dependency_type
        self.implementation = implementation
        super().__init__(
            "Cycle detected in configuration.\n"
            f"Component {_describe_component(component_name, implementation)} has a "
            f"dependency on {qualified_name(dependency_type)}, but it doesn't provide "
            "an override.\n"
            "You must provide an override if a component has a dependency on a service "
            "that it - itself - provides.",
        )


class DIKernelResolutionCycleError(DIKernelCircularDependencyError):
    """Signal that a component was entered twice on the same creation context."""

    def __init__(self, component_name: str, resolution_path: Sequence[str]) -> None:
        self.component_name = component_name
        self.dependency_type = None
        self.implementation = None
        self.resolution_path = tuple(resolution_path)
        lines = [
            f"Dependency cycle has been detected when trying to resolve component "
            f"'{component_name}'.",
            "The resolution tree that resulted in the cycle is the following:",
            f"Component '{component_name}' resolved as dependency of",
        ]
        lines.extend(
            f"\tcomponent '{name}' resolved as dependency of"
            for name in reversed(self.resolution_path)
        )
        lines.append("\tcomponent requested directly from the kernel")
        DIKernelDependencyResolverError.__init__(self, "\n".join(lines))


class DIKernelMissingDependencyError(DIKernelDependencyResolverError):
    """Signal that no component at all exists for a required dependency.

    Typical fixes include registering the dependency or supplying it as an
    inline argument or parameter.
    """

    def __init__(
        self,
        component_name: str,
        dependency_type: Any,
        implementation: Any | None = None,
    ) -> None:
        self.component_name = component_name
        self.dependency_type = dependency_type
        self.implementation = implementation
        super().__init__(
            "Missing dependency.\n"
            f"Component {_describe_component(component_name, implementation)} has a "
            f"dependency on {qualified_name(dependency_type)}, which could not be resolved.\n"
            "Make sure the dependency is correctly registered in the container as a "
            "service, or provided as inline argument.",
        )


class DIKernelUnresolvedDependencyError(DIKernelDependencyResolverError):
    """Signal a mandatory dependency that resolved to ``None`` without a default."""

    def __init__(
        self,
        component_name: str,
        implementation: Any | None,
        dependency_key: str | None,
        dependency_type: Any,
    ) -> None:
        self.component_name = component_name
        self.implementation = implementation
        self.dependency_key = dependency_key
        self.dependency_type = dependency_type
        implementation_name = "" if implementation is None else qualified_name(implementation)
        super().__init__(
            f"Could not resolve non-optional dependency for '{component_name}' "
            f"({implementation_name}). Parameter '{dependency_key}' type "
            f"'{qualified_name(dependency_type)}'",
        )


class DIKernelInvalidReferenceError(DIKernelDependencyResolverError):
    """Signal a parameter override whose value is not a valid ``${key}`` reference."""

    def __init__(self, parameter_name: str, value: Any) -> None:
        self.parameter_name = parameter_name
        self.value = value
        super().__init__(
            f"Key invalid for parameter {parameter_name}. "
            "Thus the kernel was unable to override the service dependency",
        )


def generic_arity(value: Any) -> int:
    """Return the number of generic arguments carried by a closed generic type."""
    return len(get_args(value))


def strategy_name(strategy: Any) -> str:
    """Render a matching strategy for diagnostics."""
    if strategy is None:
        return "default"
    if hasattr(strategy, "__qualname__"):
        return definition_name(strategy)
    return definition_name(type(strategy))


def _describe_component(component_name: str, implementation: Any | None) -> str:
    if implementation is None:
        return component_name
    implementation_name = qualified_name(implementation)
    if implementation_name == component_name:
        return component_name
    return f"{component_name} ({implementation_name})"
