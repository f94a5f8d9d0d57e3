from __future__ import annotations

import inspect
import types
from collections.abc import Mapping
from typing import Any, TypeVar, Union, get_args, get_origin, get_type_hints

from dikernel.exceptions import DIKernelDependencyExtractionError, DIKernelInvalidRegistrationError
from dikernel.generics import substitute_typevars
from dikernel.naming import qualified_name

_IMPLICIT_FIRST_PARAMETER_NAMES = {"self", "cls"}
_SKIPPED_PARAMETER_KINDS = {inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD}


class DependencyModel:
    """A single dependency slot of a component.

    The descriptor is immutable except for ``key``: a ``${key}`` parameter
    override may redirect it exactly once.
    """

    __slots__ = (
        "_key",
        "_redirected",
        "default_value",
        "has_default",
        "is_optional",
        "original_key",
        "target_type",
    )

    def __init__(
        self,
        key: str | None,
        target_type: Any,
        *,
        is_optional: bool = False,
        has_default: bool = False,
        default_value: Any = None,
    ) -> None:
        self._key = key
        self._redirected = False
        self.original_key = key
        self.target_type = target_type
        self.is_optional = is_optional
        self.has_default = has_default
        self.default_value = default_value

    @property
    def key(self) -> str | None:
        return self._key

    @property
    def target_item_type(self) -> Any:
        return self.target_type

    @property
    def lookup_keys(self) -> tuple[str, ...]:
        """Keys overrides are matched against: the declared name, then the redirect target."""
        keys = (self.original_key, self._key)
        return tuple(dict.fromkeys(key for key in keys if key is not None))

    @property
    def is_redirected(self) -> bool:
        return self._redirected

    def redirect(self, key: str) -> None:
        """Point the dependency at the component registered under ``key``.

        Raises:
            DIKernelInvalidRegistrationError: If the dependency was already
                redirected to a different key.

        """
        if self._redirected:
            if key == self._key:
                return
            msg = (
                f"Dependency '{self.original_key}' is already redirected to '{self._key}' "
                f"and cannot be redirected to '{key}'."
            )
            raise DIKernelInvalidRegistrationError(msg)
        self._key = key
        self._redirected = True

    def __repr__(self) -> str:
        return (
            f"DependencyModel(key={self._key!r}, target_type={qualified_name(self.target_type)}, "
            f"is_optional={self.is_optional}, has_default={self.has_default})"
        )


def extract_dependencies(
    implementation: Any,
    *,
    typevar_map: Mapping[TypeVar, Any] | None = None,
) -> tuple[DependencyModel, ...]:
    """Build dependency descriptors from an implementation's ``__init__``.

    Closed generic implementations are inspected through their origin class and
    the TypeVars in the annotations are substituted with ``typevar_map``.

    Args:
        implementation: Class (or closed generic alias) to inspect.
        typevar_map: Mapping used to close generic annotations.

    Returns:
        One descriptor per named constructor parameter, in declaration order.

    Raises:
        DIKernelDependencyExtractionError: If the signature or its type hints
            cannot be evaluated, or a positional-only parameter has no default.

    """
    target = get_origin(implementation) or implementation
    init_func = getattr(target, "__init__", None)
    if init_func is None or init_func is object.__init__:
        return ()

    try:
        signature = inspect.signature(init_func)
        type_hints = get_type_hints(init_func)
    except (TypeError, NameError, ValueError) as error:
        raise DIKernelDependencyExtractionError(implementation, error) from error

    dependencies: list[DependencyModel] = []
    for index, (name, parameter) in enumerate(signature.parameters.items()):
        if index == 0 and name in _IMPLICIT_FIRST_PARAMETER_NAMES:
            continue
        if parameter.kind in _SKIPPED_PARAMETER_KINDS:
            continue
        has_default = parameter.default is not inspect.Parameter.empty
        if parameter.kind is inspect.Parameter.POSITIONAL_ONLY:
            # The activator passes arguments by name.
            if has_default:
                continue
            error = TypeError(f"positional-only parameter '{name}' cannot be injected")
            raise DIKernelDependencyExtractionError(implementation, error)

        annotation = type_hints.get(name, Any)
        if typevar_map:
            annotation = substitute_typevars(annotation, mapping=typevar_map)
        target_type, is_nullable = _unwrap_optional(annotation)
        dependencies.append(
            DependencyModel(
                name,
                target_type,
                is_optional=has_default or is_nullable,
                has_default=has_default,
                default_value=parameter.default if has_default else None,
            ),
        )
    return tuple(dependencies)


def _unwrap_optional(annotation: Any) -> tuple[Any, bool]:
    origin = get_origin(annotation)
    if origin is not Union and origin is not types.UnionType:
        return annotation, False

    arguments = get_args(annotation)
    non_none = tuple(argument for argument in arguments if argument is not type(None))
    if len(non_none) == len(arguments):
        return annotation, False
    if len(non_none) == 1:
        return non_none[0], True
    return Union[non_none], True  # noqa: UP007
