"""Tests for the dependency resolution engine."""

from typing import Any

import pytest

from dikernel.context import CreationContext
from dikernel.dependency import DependencyModel
from dikernel.exceptions import (
    DIKernelCircularDependencyError,
    DIKernelInvalidReferenceError,
    DIKernelMissingDependencyError,
    DIKernelUnresolvedDependencyError,
)
from dikernel.kernel import Kernel
from dikernel.model import ComponentModel
from dikernel.resolvers import SubDependencyResolver


class Logger:
    pass


class ConsoleLogger(Logger):
    pass


class FileLogger(Logger):
    pass


class LoggerDecorator(Logger):
    def __init__(self, inner: Logger) -> None:
        self.inner = inner


class Consumer:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger


class Server:
    def __init__(self, port: int) -> None:
        self.port = port


class TimeoutClient:
    def __init__(self, timeout: int = 30) -> None:
        self.timeout = timeout


class KernelAware:
    def __init__(self, kernel: Kernel) -> None:
        self.kernel = kernel


class Foo:
    pass


class Root:
    def __init__(self, foo: Foo) -> None:
        self.foo = foo


class FallbackRoot(Root):
    def __init__(self) -> None:
        self.foo = None


class FooImpl(Foo):
    def __init__(self, root: Root) -> None:
        self.root = root


MODULE = Logger.__module__


class StaticResolver:
    """Sub-resolver that answers for one dependency key."""

    def __init__(self, key: str, value: Any) -> None:
        self.key = key
        self.value = value
        self.calls = 0

    def can_resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> bool:
        return dependency.key == self.key

    def resolve(
        self,
        context: CreationContext | None,
        requester: SubDependencyResolver | None,
        model: ComponentModel,
        dependency: DependencyModel,
    ) -> Any:
        self.calls += 1
        return self.value


class TestResolutionOrder:
    def test_context_arguments_win_over_every_other_source(self, kernel: Kernel) -> None:
        kernel.add_sub_resolver(StaticResolver("port", 3))
        kernel.add_component(Server, parameters={"port": "2"})

        server = kernel.resolve(Server, arguments={"port": 1})

        assert server.port == 1

    def test_context_arguments_win_after_reference_redirect(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger, name="console")
        kernel.add_component(Consumer, parameters={"logger": "${console}"})
        file_logger = FileLogger()

        assert isinstance(kernel.resolve(Consumer).logger, ConsoleLogger)
        assert kernel.resolve(Consumer, arguments={"logger": file_logger}).logger is file_logger
        assert isinstance(kernel.resolve(Consumer).logger, ConsoleLogger)

    def test_context_arguments_match_by_type(self, kernel: Kernel) -> None:
        logger = FileLogger()
        kernel.add_component(ConsoleLogger, service=Logger)
        kernel.add_component(Consumer)

        consumer = kernel.resolve(Consumer, arguments={Logger: logger})

        assert consumer.logger is logger

    def test_custom_dependencies_win_over_sub_resolvers_and_registry(
        self,
        kernel: Kernel,
    ) -> None:
        logger = FileLogger()
        kernel.add_sub_resolver(StaticResolver("logger", ConsoleLogger()))
        kernel.add_component(ConsoleLogger, service=Logger)
        kernel.add_component(Consumer, custom_dependencies={Logger: logger})

        assert kernel.resolve(Consumer).logger is logger

    def test_sub_resolver_wins_over_registry(self, kernel: Kernel) -> None:
        logger = FileLogger()
        kernel.add_component(ConsoleLogger, service=Logger)
        kernel.add_component(Consumer)
        kernel.add_sub_resolver(StaticResolver("logger", logger))

        assert kernel.resolve(Consumer).logger is logger

    def test_sub_resolvers_are_consulted_in_registration_order(self, kernel: Kernel) -> None:
        first = StaticResolver("port", 1)
        second = StaticResolver("port", 2)
        kernel.add_sub_resolver(first)
        kernel.add_sub_resolver(second)
        kernel.add_component(Server)

        assert kernel.resolve(Server).port == 1
        assert second.calls == 0

    def test_requester_is_consulted_before_sub_resolvers(self, kernel: Kernel) -> None:
        requester = StaticResolver("port", 10)
        kernel.add_sub_resolver(StaticResolver("port", 20))
        model = ComponentModel.create(Server, name="unregistered-server")
        dependency = DependencyModel("port", int)

        value = kernel.resolver.resolve(None, requester, model, dependency)

        assert value == 10

    def test_registry_service_is_used_without_overrides(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger)
        kernel.add_component(Consumer)

        assert isinstance(kernel.resolve(Consumer).logger, ConsoleLogger)

    def test_kernel_dependency_resolves_to_kernel(self, kernel: Kernel) -> None:
        kernel.add_component(KernelAware)

        assert kernel.resolve(KernelAware).kernel is kernel


class TestParameters:
    def test_literal_parameter_is_converted(self, kernel: Kernel) -> None:
        kernel.add_component(Server, parameters={"port": "8080"})

        assert kernel.resolve(Server).port == 8080

    def test_literal_parameter_by_type_name(self, kernel: Kernel) -> None:
        kernel.add_component(Server, parameters={int: "9000"})

        assert kernel.resolve(Server).port == 9000

    def test_reference_parameter_wins_over_registry(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger, name="console")
        kernel.add_component(FileLogger, service=Logger, name="file")
        kernel.add_component(Consumer, parameters={"logger": "${file}"})

        assert isinstance(kernel.resolve(Consumer).logger, FileLogger)

    def test_reference_redirect_is_stable_across_resolutions(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger, name="console")
        kernel.add_component(FileLogger, service=Logger, name="file")
        handler = kernel.add_component(Consumer, parameters={"logger": "${file}"})

        first = kernel.resolve(Consumer)
        second = kernel.resolve(Consumer)

        assert type(first.logger) is type(second.logger) is FileLogger
        assert first is not second
        (dependency,) = handler.dependencies
        assert dependency.key == "file"
        assert dependency.original_key == "logger"
        assert dependency.is_redirected

    def test_malformed_reference_raises(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger, name="console")
        kernel.add_component(Consumer, parameters={"logger": "${console"})

        with pytest.raises(DIKernelInvalidReferenceError) as exc_info:
            kernel.resolve(Consumer)

        assert exc_info.value.parameter_name == "logger"
        assert str(exc_info.value) == (
            "Key invalid for parameter logger. "
            "Thus the kernel was unable to override the service dependency"
        )


class TestCycles:
    def test_decorator_receives_next_provider_of_its_own_service(self, kernel: Kernel) -> None:
        kernel.add_component(LoggerDecorator, service=Logger, name="decorator")
        kernel.add_component(ConsoleLogger, service=Logger, name="console")

        logger = kernel.resolve(Logger)

        assert isinstance(logger, LoggerDecorator)
        assert isinstance(logger.inner, ConsoleLogger)

    def test_self_dependency_without_alternative_raises(self, kernel: Kernel) -> None:
        kernel.add_component(LoggerDecorator, service=Logger, name="decorator")

        with pytest.raises(DIKernelCircularDependencyError) as exc_info:
            kernel.resolve(Logger)

        assert exc_info.value.component_name == "decorator"
        assert exc_info.value.dependency_type is Logger
        assert str(exc_info.value) == (
            "Cycle detected in configuration.\n"
            f"Component decorator ({MODULE}.LoggerDecorator) has a dependency on "
            f"{MODULE}.Logger, but it doesn't provide an override.\n"
            "You must provide an override if a component has a dependency on a service "
            "that it - itself - provides."
        )

    def test_override_breaks_self_dependency(self, kernel: Kernel) -> None:
        kernel.add_component(
            LoggerDecorator,
            service=Logger,
            name="decorator",
            parameters={"inner": "${console}"},
        )
        kernel.add_component(ConsoleLogger, service=Logger, name="console")

        logger = kernel.resolve(Logger)

        assert isinstance(logger.inner, ConsoleLogger)

    def test_self_dependency_with_default_uses_default(self, kernel: Kernel) -> None:
        class OptionalDecorator(Logger):
            def __init__(self, inner: Logger | None = None) -> None:
                self.inner = inner

        kernel.add_component(OptionalDecorator, service=Logger, name="decorator")

        assert kernel.resolve(Logger).inner is None

    def test_mutual_dependency_through_service_raises(self, kernel: Kernel) -> None:
        kernel.add_component(Root)
        kernel.add_component(FooImpl, service=Foo)

        with pytest.raises(DIKernelCircularDependencyError) as exc_info:
            kernel.resolve(Root)

        assert exc_info.value.component_name == f"{MODULE}.FooImpl"
        assert exc_info.value.dependency_type is Root
        assert str(exc_info.value).startswith(
            "Cycle detected in configuration.\n"
            f"Component {MODULE}.FooImpl has a dependency on {MODULE}.Root, "
            "but it doesn't provide an override.\n",
        )

    def test_reference_override_breaks_mutual_dependency(self, kernel: Kernel) -> None:
        kernel.add_component(Root)
        kernel.add_component(FooImpl, service=Foo, parameters={"root": "${fallback}"})
        kernel.add_component(FallbackRoot, service=Root, name="fallback")

        root = kernel.resolve(Root)

        assert type(root) is Root
        assert isinstance(root.foo, FooImpl)
        assert isinstance(root.foo.root, FallbackRoot)


class TestFailures:
    def test_missing_dependency_raises(self, kernel: Kernel) -> None:
        kernel.add_component(Consumer, name="consumer")

        with pytest.raises(DIKernelMissingDependencyError) as exc_info:
            kernel.resolve(Consumer)

        assert exc_info.value.component_name == "consumer"
        assert exc_info.value.dependency_type is Logger
        assert str(exc_info.value) == (
            "Missing dependency.\n"
            f"Component consumer ({MODULE}.Consumer) has a dependency on {MODULE}.Logger, "
            "which could not be resolved.\n"
            "Make sure the dependency is correctly registered in the container as a "
            "service, or provided as inline argument."
        )

    def test_mandatory_dependency_resolving_to_none_raises(self, kernel: Kernel) -> None:
        kernel.add_sub_resolver(StaticResolver("port", None))
        kernel.add_component(Server, name="server")

        with pytest.raises(DIKernelUnresolvedDependencyError) as exc_info:
            kernel.resolve(Server)

        assert exc_info.value.dependency_key == "port"
        assert str(exc_info.value) == (
            f"Could not resolve non-optional dependency for 'server' ({MODULE}.Server). "
            "Parameter 'port' type 'int'"
        )

    def test_context_arguments_do_not_reach_nested_components(self, kernel: Kernel) -> None:
        class Frontend:
            def __init__(self, server: Server) -> None:
                self.server = server

        kernel.add_component(Server)
        kernel.add_component(Frontend)

        with pytest.raises(DIKernelMissingDependencyError):
            kernel.resolve(Frontend, arguments={"port": 80})


class TestDefaultsAndNotifications:
    def test_default_value_used_when_nothing_provides_dependency(self, kernel: Kernel) -> None:
        kernel.add_component(TimeoutClient)

        assert kernel.resolve(TimeoutClient).timeout == 30

    def test_default_value_replaces_none_from_sub_resolver(self, kernel: Kernel) -> None:
        kernel.add_sub_resolver(StaticResolver("timeout", None))
        kernel.add_component(TimeoutClient)

        assert kernel.resolve(TimeoutClient).timeout == 30

    def test_listener_notified_once_with_final_value(self) -> None:
        events: list[tuple[str, str | None, Any]] = []

        def record(model: ComponentModel, dependency: DependencyModel, value: Any) -> None:
            events.append((model.name, dependency.key, value))

        kernel = Kernel(on_dependency_resolving=record)
        kernel.add_sub_resolver(StaticResolver("timeout", None))
        kernel.add_component(TimeoutClient, name="client")

        kernel.resolve(TimeoutClient)

        assert events == [("client", "timeout", 30)]

    def test_removed_listener_is_not_notified(self, kernel: Kernel) -> None:
        events: list[Any] = []

        def record(model: ComponentModel, dependency: DependencyModel, value: Any) -> None:
            events.append(value)

        kernel.add_dependency_resolving_listener(record)
        kernel.add_component(Server, parameters={"port": "1"})
        kernel.resolve(Server)
        kernel.remove_dependency_resolving_listener(record)
        kernel.resolve(Server)

        assert events == [1]

    def test_repeated_resolution_yields_equivalent_graphs(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger)
        kernel.add_component(Consumer)

        first = kernel.resolve(Consumer)
        second = kernel.resolve(Consumer)

        assert first is not second
        assert type(first.logger) is type(second.logger) is ConsoleLogger


class TestCanResolve:
    def test_can_resolve_matches_resolve(self, kernel: Kernel) -> None:
        kernel.add_component(ConsoleLogger, service=Logger)
        model = ComponentModel.create(Consumer, name="probe")
        resolvable = DependencyModel("logger", Logger)
        unresolvable = DependencyModel("port", int)

        assert kernel.resolver.can_resolve(None, None, model, resolvable)
        assert not kernel.resolver.can_resolve(None, None, model, unresolvable)
        assert isinstance(kernel.resolver.resolve(None, None, model, resolvable), ConsoleLogger)

    def test_active_component_cannot_satisfy_its_own_dependency(self, kernel: Kernel) -> None:
        handler = kernel.add_component(ConsoleLogger, service=Logger)
        model = ComponentModel.create(Consumer, name="probe")
        dependency = DependencyModel("logger", Logger)
        context = CreationContext.empty()

        with context.enter(handler):
            assert not kernel.resolver.can_resolve(context, None, model, dependency)
        assert kernel.resolver.can_resolve(context, None, model, dependency)
