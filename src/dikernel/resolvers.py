from __future__ import annotations

import collections.abc
import functools
import threading
from collections.abc import Iterator
from typing import TYPE_CHECKING, Any, Protocol, get_args, get_origin, runtime_checkable

from dikernel.context import CreationContext
from dikernel.exceptions import DIKernelInvalidRegistrationError
from dikernel.handler import HandlerState

if TYPE_CHECKING:
    from dikernel.dependency import DependencyModel
    from dikernel.handler import Handler
    from dikernel.kernel import Kernel
    from dikernel.model import ComponentModel

_SEQUENCE_ORIGINS: tuple[Any, ...] = (
    list,
    collections.abc.Sequence,
    collections.abc.Iterable,
    collections.abc.Collection,
)
_PAIR_ARGUMENT_COUNT = 2


@runtime_checkable
class SubDependencyResolver(Protocol):
    """A pluggable resolver consulted before the kernel's default flow."""

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        """Return whether this resolver can supply ``dependency`` for ``model``.

        Args:
            context: Creation context of the current resolution, if any.
            requester: Parent resolver asking on behalf of the component.
            model: Component that owns the dependency.
            dependency: Dependency being satisfied.

        """

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        """Return the value for ``dependency``.

        Only called after ``can_resolve`` returned ``True`` for the same arguments.
        """


class SubResolverChain:
    """Ordered, copy-on-write list of sub-resolvers.

    Mutations replace the underlying tuple under a lock; readers iterate over
    whatever tuple was current when they started, so adding or removing a
    resolver never disturbs an in-flight resolution.
    """

    __slots__ = ("_lock", "_resolvers")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._resolvers: tuple[SubDependencyResolver, ...] = ()

    def add(self, resolver: SubDependencyResolver) -> None:
        if resolver is None:
            msg = "Sub-resolver must not be None."
            raise DIKernelInvalidRegistrationError(msg)
        with self._lock:
            self._resolvers = (*self._resolvers, resolver)

    def remove(self, resolver: SubDependencyResolver) -> None:
        with self._lock:
            resolvers = list(self._resolvers)
            for index, candidate in enumerate(resolvers):
                if candidate is resolver:
                    del resolvers[index]
                    break
            self._resolvers = tuple(resolvers)

    def snapshot(self) -> tuple[SubDependencyResolver, ...]:
        return self._resolvers

    def __iter__(self) -> Iterator[SubDependencyResolver]:
        return iter(self._resolvers)

    def __len__(self) -> int:
        return len(self._resolvers)


class CollectionResolver:
    """Resolve ``list[T]``, ``tuple[T, ...]``, ``Sequence[T]`` and friends.

    The value holds one instance per valid handler registered for ``T``, in
    registration order, skipping handlers already active in the context.
    Handlers still waiting for a dependency are left out. Unless
    ``allow_empty`` is set, the resolver only answers when at least one valid
    handler exists.
    """

    def __init__(self, kernel: Kernel, *, allow_empty: bool = False) -> None:
        self._kernel = kernel
        self._allow_empty = allow_empty

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        item_type = _collection_item_type(dependency.target_item_type)
        if item_type is None:
            return False
        return self._allow_empty or bool(self._candidate_handlers(context, item_type))

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        target_type = dependency.target_item_type
        item_type = _collection_item_type(target_type)
        items = [
            handler.resolve_component(_item_context(context, item_type))
            for handler in self._candidate_handlers(context, item_type)
        ]
        if get_origin(target_type) is tuple:
            return tuple(items)
        return items

    def _candidate_handlers(self, context: CreationContext | None, item_type: Any) -> list[Handler]:
        return [
            handler
            for handler in self._kernel.get_handlers(item_type)
            if handler.current_state is HandlerState.VALID
            and not handler.is_being_resolved_in_context(context)
        ]


class FactoryResolver:
    """Resolve ``Callable[[], T]`` to a function that resolves ``T`` on each call."""

    def __init__(self, kernel: Kernel) -> None:
        self._kernel = kernel

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        product = _factory_product_type(dependency.target_item_type)
        return product is not None and bool(self._kernel.get_handlers(product))

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        product = _factory_product_type(dependency.target_item_type)
        return functools.partial(self._kernel.resolve, product)


def _item_context(context: CreationContext | None, item_type: Any) -> CreationContext:
    if context is None:
        return CreationContext(item_type)
    return context.child(item_type)


def _collection_item_type(target_type: Any) -> Any | None:
    origin = get_origin(target_type)
    arguments = get_args(target_type)
    if origin is tuple:
        if len(arguments) == _PAIR_ARGUMENT_COUNT and arguments[1] is Ellipsis:
            return arguments[0]
        return None
    if origin in _SEQUENCE_ORIGINS and len(arguments) == 1:
        return arguments[0]
    return None


def _factory_product_type(target_type: Any) -> Any | None:
    if get_origin(target_type) is not collections.abc.Callable:
        return None
    arguments = get_args(target_type)
    if len(arguments) != _PAIR_ARGUMENT_COUNT or arguments[0] != []:
        return None
    return arguments[1]
