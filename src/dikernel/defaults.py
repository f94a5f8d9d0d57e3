from collections.abc import Callable, Mapping
from typing import Any, TypeAlias

Activator: TypeAlias = Callable[[Any, Mapping[str, Any]], Any]
"""Build an instance from a (closed) implementation and its resolved arguments."""

DEFAULT_AUTOREGISTER_IGNORES: frozenset[type[Any]] = frozenset(
    {
        int,
        str,
        float,
        bool,
        bytes,
        complex,
        list,
        dict,
        set,
        frozenset,
        tuple,
        type,
        object,
    },
)


def default_activator(implementation: Any, arguments: Mapping[str, Any]) -> Any:
    """Call the implementation with the resolved arguments as keywords."""
    return implementation(**arguments)
