from __future__ import annotations

import types
from typing import Any, TypeVar, get_args, get_origin

_BUILTINS_MODULE = "builtins"


def qualified_name(value: Any) -> str:
    """Render a type expression with fully qualified names.

    Classes render as ``module.QualName`` (builtins keep their bare name),
    closed generics as ``module.Origin[module.Arg, ...]`` and TypeVars by
    their own name. Open generic classes render with their parameters, for
    example ``module.Repository[T1, T2]``.

    Args:
        value: Class, generic alias, TypeVar, or any other key object.

    Returns:
        A stable, human-readable name for ``value``.

    """
    if isinstance(value, TypeVar):
        return value.__name__
    if isinstance(value, types.UnionType):
        return " | ".join(_render_argument(item) for item in get_args(value))

    origin = get_origin(value)
    if origin is not None:
        arguments = get_args(value)
        if not arguments:
            return definition_name(origin)
        rendered = ", ".join(_render_argument(argument) for argument in arguments)
        return f"{definition_name(origin)}[{rendered}]"

    if isinstance(value, type):
        parameters = getattr(value, "__parameters__", ())
        if parameters:
            rendered = ", ".join(qualified_name(parameter) for parameter in parameters)
            return f"{definition_name(value)}[{rendered}]"
        return definition_name(value)

    return repr(value)


def definition_name(value: Any) -> str:
    """Render the name of a class or a generic definition without arguments."""
    origin = get_origin(value) or value
    module = getattr(origin, "__module__", None)
    name = getattr(origin, "__qualname__", None) or getattr(origin, "__name__", None)
    if name is None:
        return repr(origin)
    if module is None or module == _BUILTINS_MODULE:
        return name
    return f"{module}.{name}"


def _render_argument(argument: Any) -> str:
    if argument is Ellipsis:
        return "..."
    if argument is type(None) or argument is None:
        return "None"
    if isinstance(argument, list):
        return "[" + ", ".join(_render_argument(item) for item in argument) + "]"
    return qualified_name(argument)
