from __future__ import annotations

import functools
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError

from dikernel.exceptions import DIKernelConversionError

if TYPE_CHECKING:
    from dikernel.context import CreationContext
    from dikernel.model import ComponentModel


@dataclass(frozen=True, slots=True)
class ConversionFrame:
    """The component and creation context a conversion runs on behalf of."""

    model: ComponentModel
    context: CreationContext | None


class ConversionContext:
    """Task/thread-local stack of conversion frames.

    Each thread (and each asyncio task) sees its own stack, so two concurrent
    resolutions of the same component never share a frame.
    """

    __slots__ = ("_frames_var",)

    def __init__(self) -> None:
        self._frames_var: ContextVar[tuple[ConversionFrame, ...]] = ContextVar(
            "dikernel_conversion_frames",
            default=(),
        )

    @property
    def current(self) -> ConversionFrame | None:
        frames = self._frames_var.get()
        return frames[-1] if frames else None

    @property
    def depth(self) -> int:
        return len(self._frames_var.get())

    @contextmanager
    def scope(self, model: ComponentModel, context: CreationContext | None) -> Iterator[ConversionFrame]:
        """Push a frame for the block and pop it on every exit path."""
        frame = ConversionFrame(model=model, context=context)
        token = self._frames_var.set((*self._frames_var.get(), frame))
        try:
            yield frame
        finally:
            self._frames_var.reset(token)


class ConversionManager:
    """Turn raw inline parameter values into typed arguments.

    Conversion is delegated to pydantic's ``TypeAdapter`` in lax mode, so
    strings such as ``"8080"`` or ``"true"`` convert to ``int``/``bool`` and
    mappings validate into dataclasses or pydantic models.
    """

    def __init__(self) -> None:
        self.context = ConversionContext()

    def perform_conversion(self, value: Any, target_type: Any) -> Any:
        """Convert ``value`` to ``target_type``.

        Raises:
            DIKernelConversionError: If pydantic rejects the value or cannot
                build a schema for the target type.

        """
        if value is None:
            return None
        try:
            adapter = _type_adapter(target_type)
            return adapter.validate_python(value)
        except (ValidationError, PydanticSchemaGenerationError, TypeError) as error:
            raise DIKernelConversionError(value, target_type, error) from error


@functools.lru_cache(maxsize=256)
def _type_adapter(target_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target_type)
