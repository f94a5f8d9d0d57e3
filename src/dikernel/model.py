from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from dikernel.generics import MatchingStrategy
from dikernel.naming import qualified_name
from dikernel.parameters import ParameterModel, build_parameters, parameter_key

GENERIC_IMPLEMENTATION_MATCHING_STRATEGY = "generic_implementation_matching_strategy"
"""Extended property key holding the component's ``MatchingStrategy``."""

INJECT_CONSTRUCTOR = "inject_constructor"
"""Extended property key; ``False`` builds the component without constructor arguments."""


@dataclass(frozen=True, slots=True, kw_only=True)
class ComponentModel:
    """Describe one registered component.

    The model is owned by the kernel and read-only for the resolution engine.
    """

    name: str
    """Unique component key."""

    services: tuple[Any, ...]
    """Service contracts the component provides, possibly open generic."""

    implementation: Any
    """Implementation class, possibly open generic."""

    parameters: Mapping[str, ParameterModel] = field(default_factory=dict)
    """Inline configuration values keyed by dependency key or qualified type name."""

    custom_dependencies: Mapping[Any, Any] = field(default_factory=dict)
    """Typed inline values keyed by dependency key or by type."""

    extended_properties: Mapping[str, Any] = field(default_factory=dict)
    """Free-form metadata, including the generic matching strategy."""

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))
        object.__setattr__(
            self,
            "custom_dependencies",
            MappingProxyType(dict(self.custom_dependencies)),
        )
        object.__setattr__(
            self,
            "extended_properties",
            MappingProxyType(dict(self.extended_properties)),
        )

    @classmethod
    def create(
        cls,
        implementation: Any,
        *,
        service: Any | tuple[Any, ...] | None = None,
        name: str | None = None,
        parameters: Mapping[Any, Any] | None = None,
        custom_dependencies: Mapping[Any, Any] | None = None,
        matching_strategy: MatchingStrategy | None = None,
        extended_properties: Mapping[str, Any] | None = None,
    ) -> ComponentModel:
        """Build a model with the defaults used by ``Kernel.add_component``.

        The name defaults to the implementation's qualified name and the
        service defaults to the implementation itself. An explicit ``None``
        matching strategy is kept out of the extended properties, which makes it
        behave exactly like no strategy at all.
        """
        if service is None:
            services: tuple[Any, ...] = (implementation,)
        elif isinstance(service, tuple):
            services = service
        else:
            services = (service,)

        properties = dict(extended_properties or {})
        if matching_strategy is not None:
            properties[GENERIC_IMPLEMENTATION_MATCHING_STRATEGY] = matching_strategy

        return cls(
            name=name or qualified_name(implementation),
            services=services,
            implementation=implementation,
            parameters=build_parameters(parameters),
            custom_dependencies=dict(custom_dependencies or {}),
            extended_properties=properties,
        )

    @property
    def inject_constructor(self) -> bool:
        return bool(self.extended_properties.get(INJECT_CONSTRUCTOR, True))

    @property
    def matching_strategy(self) -> MatchingStrategy | None:
        return self.extended_properties.get(GENERIC_IMPLEMENTATION_MATCHING_STRATEGY)

    def find_custom_dependency(
        self,
        keys: Sequence[str],
        target_type: Any,
    ) -> tuple[bool, Any]:
        """Look up a typed inline value by the first matching key, then by type.

        Returns:
            ``(found, value)``; ``value`` may legitimately be ``None``.

        """
        if not self.custom_dependencies:
            return False, None
        for key in keys:
            if key in self.custom_dependencies:
                return True, self.custom_dependencies[key]
        try:
            if target_type in self.custom_dependencies:
                return True, self.custom_dependencies[target_type]
        except TypeError:
            return False, None
        type_name = parameter_key(target_type)
        if type_name in self.custom_dependencies:
            return True, self.custom_dependencies[type_name]
        return False, None
