from __future__ import annotations

import functools
import logging
import operator
import types
from collections.abc import Callable, Mapping, Sequence
from typing import Any, TypeAlias, TypeVar, get_args, get_origin

from dikernel.exceptions import DIKernelGenericConstraintError, DIKernelGenericMatchingError
from dikernel.naming import qualified_name

logger = logging.getLogger(__name__)

MatchingStrategy: TypeAlias = Callable[[Any, Any], Sequence[Any] | None]
"""Derive the generic arguments that close an open implementation.

Called with the requested closed service type and the open implementation
class. Returning ``None`` declines the match.
"""


def default_matching_strategy(requested_type: Any, implementation: Any) -> tuple[Any, ...]:
    """Use the requested service's generic arguments verbatim."""
    return get_args(requested_type)


def repeat_generic_arguments(requested_type: Any, implementation: Any) -> tuple[Any, ...] | None:
    """Repeat a single requested generic argument across every implementation parameter.

    ``Repository[A]`` closes ``DoubleRepository[T1, T2]`` as
    ``DoubleRepository[A, A]``. Requests with more than one argument are passed
    through unchanged; non-generic requests are declined.
    """
    arguments = get_args(requested_type)
    if not arguments:
        return None
    if len(arguments) == 1:
        return arguments * len(generic_parameters(implementation))
    return arguments


def generic_parameters(implementation: Any) -> tuple[TypeVar, ...]:
    """Return the unbound TypeVars an open generic implementation declares."""
    if get_origin(implementation) is not None:
        return ()
    return tuple(
        parameter
        for parameter in getattr(implementation, "__parameters__", ())
        if isinstance(parameter, TypeVar)
    )


def is_open_generic(implementation: Any) -> bool:
    """Return whether ``implementation`` needs generic arguments before use."""
    return isinstance(implementation, type) and bool(generic_parameters(implementation))


def close_implementation(
    requested_type: Any,
    implementation: Any,
    strategy: MatchingStrategy | None,
    *,
    component_name: str,
) -> Any:
    """Close an open generic implementation for a requested service type.

    Args:
        requested_type: Closed service type being resolved, e.g. ``Repository[A]``.
        implementation: Implementation class, possibly open generic.
        strategy: Matching strategy; ``None`` selects ``default_matching_strategy``.
        component_name: Name of the component, used in diagnostics.

    Returns:
        ``implementation`` unchanged when it is not open generic, otherwise the
        closed alias ``implementation[arguments]``.

    Raises:
        DIKernelGenericMatchingError: If the strategy declines or supplies the
            wrong number of arguments.
        DIKernelGenericConstraintError: If the supplied arguments violate the
            implementation's TypeVar bounds or constraints.

    """
    parameters = generic_parameters(implementation)
    if not parameters:
        return implementation

    effective_strategy = default_matching_strategy if strategy is None else strategy
    arguments = effective_strategy(requested_type, implementation)
    if arguments is None or len(arguments) != len(parameters):
        logger.debug(
            "Generic matching failed for %s -> %s: strategy returned %r",
            qualified_name(requested_type),
            qualified_name(implementation),
            arguments,
        )
        raise DIKernelGenericMatchingError(requested_type, implementation, len(parameters))

    arguments = tuple(arguments)
    typevar_map = dict(zip(parameters, arguments, strict=True))
    if not all(
        _is_type_argument_valid(typevar=typevar, argument=argument)
        for typevar, argument in typevar_map.items()
    ):
        raise DIKernelGenericConstraintError(
            arguments,
            implementation,
            component_name,
            effective_strategy,
        )

    try:
        return _rebuild_alias(origin=implementation, args=arguments)
    except TypeError as error:
        raise DIKernelGenericConstraintError(
            arguments,
            implementation,
            component_name,
            effective_strategy,
        ) from error


def typevar_map_for(closed_implementation: Any) -> dict[TypeVar, Any]:
    """Map the TypeVars of a closed alias' origin to its arguments."""
    origin = get_origin(closed_implementation)
    if origin is None:
        return {}
    return dict(zip(generic_parameters(origin), get_args(closed_implementation), strict=False))


def service_definition(service: Any) -> Any:
    """Return the generic definition of a service key (the key itself if not generic)."""
    return get_origin(service) or service


def contains_typevar(value: Any) -> bool:
    """Return whether ``value`` is still open, i.e. mentions a ``TypeVar`` anywhere."""
    if isinstance(value, TypeVar):
        return True
    if get_origin(value) is not None:
        return any(contains_typevar(argument) for argument in get_args(value))
    parameters = getattr(value, "__parameters__", ())
    return any(isinstance(parameter, TypeVar) for parameter in parameters)


def substitute_typevars(value: Any, *, mapping: Mapping[TypeVar, Any]) -> Any:
    """Close a constructor annotation of a generic implementation.

    ``mapping`` comes from ``typevar_map_for`` on the closed implementation, so
    ``Repository[T]`` in ``__init__`` of ``Service[T]`` becomes
    ``Repository[User]`` when building ``Service[User]``. TypeVars missing
    from ``mapping`` are left in place, and annotations that cannot be
    re-subscripted are returned unchanged.
    """
    if isinstance(value, TypeVar):
        return mapping.get(value, value)

    origin = get_origin(value)
    arguments = get_args(value)
    if origin is None or not arguments:
        return value

    closed = tuple(substitute_typevars(argument, mapping=mapping) for argument in arguments)
    if closed == arguments:
        return value
    if origin is types.UnionType:
        return functools.reduce(operator.or_, closed)
    try:
        return _rebuild_alias(origin=origin, args=closed)
    except TypeError:
        return value


def _rebuild_alias(*, origin: Any, args: tuple[Any, ...]) -> Any:
    if len(args) == 1:
        return origin[args[0]]
    return origin[args]


def _is_type_argument_valid(*, typevar: TypeVar, argument: Any) -> bool:
    # Constrained TypeVars accept any listed type; bound ones accept subtypes.
    constraints = typevar.__constraints__
    if constraints:
        return any(_satisfies(argument, constraint) for constraint in constraints)
    if typevar.__bound__ is None:
        return True
    return _satisfies(argument, typevar.__bound__)


def _satisfies(argument: Any, requirement: Any) -> bool:
    if requirement is Any:
        return True
    argument_class = get_origin(argument) or argument
    requirement_class = get_origin(requirement) or requirement
    if not (isinstance(argument_class, type) and isinstance(requirement_class, type)):
        return argument == requirement
    try:
        return issubclass(argument_class, requirement_class)
    except TypeError:
        return False
