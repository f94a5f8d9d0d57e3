from dikernel.context import CreationContext
from dikernel.conversion import ConversionManager
from dikernel.dependency import DependencyModel
from dikernel.exceptions import (
    DIKernelCircularDependencyError,
    DIKernelComponentNotFoundError,
    DIKernelConversionError,
    DIKernelDependencyExtractionError,
    DIKernelDependencyResolverError,
    DIKernelError,
    DIKernelGenericConstraintError,
    DIKernelGenericMatchingError,
    DIKernelHandlerError,
    DIKernelInvalidReferenceError,
    DIKernelInvalidRegistrationError,
    DIKernelMissingDependencyError,
    DIKernelResolutionCycleError,
    DIKernelUnresolvedDependencyError,
)
from dikernel.generics import MatchingStrategy, default_matching_strategy, repeat_generic_arguments
from dikernel.handler import GenericHandler, Handler, HandlerState
from dikernel.kernel import Kernel
from dikernel.loaders import ConcreteTypeLoader, LazyComponentLoader
from dikernel.model import ComponentModel
from dikernel.resolver import DependencyResolver
from dikernel.resolvers import CollectionResolver, FactoryResolver, SubDependencyResolver

__all__ = [
    "CollectionResolver",
    "ComponentModel",
    "ConcreteTypeLoader",
    "ConversionManager",
    "CreationContext",
    "DIKernelCircularDependencyError",
    "DIKernelComponentNotFoundError",
    "DIKernelConversionError",
    "DIKernelDependencyExtractionError",
    "DIKernelDependencyResolverError",
    "DIKernelError",
    "DIKernelGenericConstraintError",
    "DIKernelGenericMatchingError",
    "DIKernelHandlerError",
    "DIKernelInvalidReferenceError",
    "DIKernelInvalidRegistrationError",
    "DIKernelMissingDependencyError",
    "DIKernelResolutionCycleError",
    "DIKernelUnresolvedDependencyError",
    "DependencyModel",
    "DependencyResolver",
    "FactoryResolver",
    "GenericHandler",
    "Handler",
    "HandlerState",
    "Kernel",
    "LazyComponentLoader",
    "MatchingStrategy",
    "SubDependencyResolver",
    "default_matching_strategy",
    "repeat_generic_arguments",
]
