from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, get_origin

from dikernel.exceptions import DIKernelInvalidReferenceError
from dikernel.naming import definition_name, qualified_name

if TYPE_CHECKING:
    from dikernel.dependency import DependencyModel
    from dikernel.model import ComponentModel

_REFERENCE_PREFIX = "${"
_REFERENCE_SUFFIX = "}"


@dataclass(frozen=True, slots=True)
class ParameterModel:
    """An inline configuration value attached to a component registration."""

    name: str
    """Dependency key or fully qualified type name the parameter applies to."""

    value: Any = None
    """Raw value, usually a string; ``${key}`` redirects to another component."""

    config_value: Any = None
    """Structured value (mapping, list) used when ``value`` is ``None``."""

    @property
    def is_reference(self) -> bool:
        return is_reference(self.value)

    @property
    def raw_value(self) -> Any:
        if self.value is not None or self.config_value is None:
            return self.value
        return self.config_value


def is_reference(value: Any) -> bool:
    """Return whether ``value`` is a ``${componentKey}`` reference expression."""
    return (
        isinstance(value, str)
        and value.startswith(_REFERENCE_PREFIX)
        and value.endswith(_REFERENCE_SUFFIX)
        and len(value) > len(_REFERENCE_PREFIX) + len(_REFERENCE_SUFFIX)
    )


def looks_like_reference(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(_REFERENCE_PREFIX)


def extract_component_key(value: Any, parameter_name: str) -> str:
    """Extract the component key from a ``${key}`` reference expression.

    Raises:
        DIKernelInvalidReferenceError: If ``value`` is not a reference expression.

    """
    if not is_reference(value):
        raise DIKernelInvalidReferenceError(parameter_name, value)
    return value[len(_REFERENCE_PREFIX) : -len(_REFERENCE_SUFFIX)].strip()


def parameter_key(key: Any) -> str:
    """Normalise a registration parameter key: types become their qualified name."""
    if isinstance(key, str):
        return key
    return qualified_name(key)


def build_parameters(parameters: Mapping[Any, Any] | None) -> dict[str, ParameterModel]:
    """Build parameter models from a registration mapping.

    Values may be ``ParameterModel`` instances, plain strings, or structured
    values; keys may be dependency names or types.
    """
    result: dict[str, ParameterModel] = {}
    for key, value in (parameters or {}).items():
        name = parameter_key(key)
        if isinstance(value, ParameterModel):
            result[name] = value
        elif isinstance(value, str):
            result[name] = ParameterModel(name=name, value=value)
        else:
            result[name] = ParameterModel(name=name, config_value=value)
    return result


def obtain_parameter(dependency: DependencyModel, model: ComponentModel) -> ParameterModel | None:
    """Find the parameter override matching a dependency.

    Lookup order: the dependency's declared key, the target type's fully
    qualified name, then the generic definition's name for closed generics.
    """
    if not model.parameters:
        return None
    return _parameter_by_key(dependency, model) or _parameter_by_type(dependency, model)


def _parameter_by_key(dependency: DependencyModel, model: ComponentModel) -> ParameterModel | None:
    key = dependency.original_key
    if key is None:
        return None
    return model.parameters.get(key)


def _parameter_by_type(dependency: DependencyModel, model: ComponentModel) -> ParameterModel | None:
    target_type = dependency.target_item_type
    if target_type is None:
        return None
    parameter = model.parameters.get(qualified_name(target_type))
    if parameter is None and get_origin(target_type) is not None:
        parameter = model.parameters.get(definition_name(target_type))
    return parameter
