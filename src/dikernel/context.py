from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from dikernel.exceptions import DIKernelResolutionCycleError

if TYPE_CHECKING:
    from typing_extensions import Self

    from dikernel.dependency import DependencyModel
    from dikernel.handler import Handler
    from dikernel.model import ComponentModel
    from dikernel.resolvers import SubDependencyResolver

_EMPTY_ARGUMENTS: Mapping[Any, Any] = MappingProxyType({})


class CreationContext:
    """Track one top-level resolution and every nested resolution below it.

    The handler stack is shared by a context and the child contexts rebuilt
    from it, so cycle detection spans the whole object graph. Ambient
    ``additional_arguments`` (keyed by dependency key or by type) only reach
    the dependencies of the component requested at this level.

    A context is owned by the call that created it and is never shared across
    threads.
    """

    __slots__ = ("_additional_arguments", "_handler_stack", "parent", "requested_type")

    def __init__(
        self,
        requested_type: Any = None,
        *,
        parent: CreationContext | None = None,
        additional_arguments: Mapping[Any, Any] | None = None,
        propagate_arguments: bool = True,
    ) -> None:
        self.requested_type = requested_type
        self.parent = parent
        if parent is None:
            self._handler_stack: list[Handler] = []
            inherited: Mapping[Any, Any] = _EMPTY_ARGUMENTS
        else:
            self._handler_stack = parent._handler_stack
            inherited = parent._additional_arguments if propagate_arguments else _EMPTY_ARGUMENTS

        if additional_arguments:
            merged = dict(inherited)
            merged.update(additional_arguments)
            self._additional_arguments: Mapping[Any, Any] = MappingProxyType(merged)
        else:
            self._additional_arguments = inherited

    @classmethod
    def empty(cls) -> Self:
        """Create a context with no requested type, arguments, or active handlers."""
        return cls()

    def child(self, requested_type: Any) -> CreationContext:
        """Create a context narrowed to ``requested_type`` that keeps the active stack."""
        return CreationContext(requested_type, parent=self, propagate_arguments=False)

    @property
    def additional_arguments(self) -> Mapping[Any, Any]:
        return self._additional_arguments

    @property
    def has_additional_arguments(self) -> bool:
        return bool(self._additional_arguments)

    @property
    def handler(self) -> Handler | None:
        """The innermost handler currently being resolved."""
        return self._handler_stack[-1] if self._handler_stack else None

    @property
    def resolution_path(self) -> tuple[str, ...]:
        return tuple(handler.model.name for handler in self._handler_stack)

    def is_resolving(self, handler: Handler) -> bool:
        return any(active is handler for active in self._handler_stack)

    @contextmanager
    def enter(self, handler: Handler) -> Iterator[Self]:
        """Mark ``handler`` as active for the duration of the block.

        Raises:
            DIKernelResolutionCycleError: If ``handler`` is already active on
                this context's stack.

        """
        if self.is_resolving(handler):
            raise DIKernelResolutionCycleError(handler.model.name, self.resolution_path)
        self._handler_stack.append(handler)
        try:
            yield self
        finally:
            self._handler_stack.pop()

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        found, _ = self._find_argument(dependency)
        return found

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        _, value = self._find_argument(dependency)
        return value

    def _find_argument(self, dependency: DependencyModel) -> tuple[bool, Any]:
        arguments = self._additional_arguments
        if not arguments:
            return False, None
        for key in dependency.lookup_keys:
            if key in arguments:
                return True, arguments[key]
        target_type = dependency.target_item_type
        try:
            if target_type is not None and target_type in arguments:
                return True, arguments[target_type]
        except TypeError:
            return False, None
        return False, None

    def __repr__(self) -> str:
        return (
            f"CreationContext(requested_type={self.requested_type!r}, "
            f"resolution_path={self.resolution_path!r})"
        )
