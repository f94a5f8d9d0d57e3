"""Tests for inline parameter conversion."""

import threading
from dataclasses import dataclass

import pytest
from pydantic import BaseModel

from dikernel.conversion import ConversionManager
from dikernel.exceptions import DIKernelConversionError, DIKernelHandlerError
from dikernel.kernel import Kernel
from dikernel.model import ComponentModel


@dataclass
class Endpoint:
    host: str
    port: int


class RetryPolicy(BaseModel):
    attempts: int
    backoff: float = 0.5


class Client:
    def __init__(self, endpoint: Endpoint, retry: RetryPolicy, verbose: bool) -> None:
        self.endpoint = endpoint
        self.retry = retry
        self.verbose = verbose


@pytest.fixture()
def converter() -> ConversionManager:
    return ConversionManager()


class TestPerformConversion:
    def test_converts_strings_in_lax_mode(self, converter: ConversionManager) -> None:
        assert converter.perform_conversion("8080", int) == 8080
        assert converter.perform_conversion("true", bool) is True
        assert converter.perform_conversion("1.5", float) == 1.5

    def test_none_stays_none(self, converter: ConversionManager) -> None:
        assert converter.perform_conversion(None, int) is None

    def test_invalid_value_raises_conversion_error(self, converter: ConversionManager) -> None:
        with pytest.raises(DIKernelConversionError) as exc_info:
            converter.perform_conversion("not a number", int)

        assert exc_info.value.value == "not a number"
        assert exc_info.value.target_type is int
        assert isinstance(exc_info.value, DIKernelHandlerError)
        assert "Could not convert parameter value 'not a number' to type 'int'" in str(
            exc_info.value,
        )

    def test_unsupported_target_type_raises_conversion_error(
        self,
        converter: ConversionManager,
    ) -> None:
        class Opaque:
            pass

        with pytest.raises(DIKernelConversionError):
            converter.perform_conversion("x", Opaque)


class TestConversionContext:
    def test_scope_pushes_and_pops_frames(self, converter: ConversionManager) -> None:
        model = ComponentModel.create(Endpoint, name="endpoint")

        assert converter.context.current is None
        with converter.context.scope(model, None) as frame:
            assert converter.context.current is frame
            assert converter.context.depth == 1
            assert frame.model is model
        assert converter.context.current is None
        assert converter.context.depth == 0

    def test_scope_pops_frame_on_error(self, converter: ConversionManager) -> None:
        model = ComponentModel.create(Endpoint, name="endpoint")

        with pytest.raises(ValueError, match="boom"), converter.context.scope(model, None):
            raise ValueError("boom")

        assert converter.context.depth == 0

    def test_frames_are_isolated_per_thread(self, converter: ConversionManager) -> None:
        model = ComponentModel.create(Endpoint, name="endpoint")
        other = ComponentModel.create(Client, name="client")
        seen: list[ComponentModel] = []

        def worker() -> None:
            with converter.context.scope(other, None) as frame:
                seen.append(frame.model)

        with converter.context.scope(model, None) as frame:
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

            assert converter.context.current is frame
            assert converter.context.depth == 1

        assert seen == [other]


class TestKernelConversion:
    def test_structured_parameters_validate_into_models(self, kernel: Kernel) -> None:
        kernel.add_component(
            Client,
            parameters={
                "endpoint": {"host": "localhost", "port": "5432"},
                "retry": {"attempts": "3"},
                "verbose": "yes",
            },
        )

        client = kernel.resolve(Client)

        assert client.endpoint == Endpoint(host="localhost", port=5432)
        assert client.retry == RetryPolicy(attempts=3)
        assert client.verbose is True

    def test_conversion_failure_surfaces_from_resolve(self, kernel: Kernel) -> None:
        class Server:
            def __init__(self, port: int) -> None:
                self.port = port

        kernel.add_component(Server, parameters={"port": "eighty"})

        with pytest.raises(DIKernelConversionError):
            kernel.resolve(Server)

    def test_custom_converter_is_used(self) -> None:
        class UpperConverter(ConversionManager):
            def perform_conversion(self, value: object, target_type: object) -> object:
                return str(value).upper()

        class Greeter:
            def __init__(self, greeting: str) -> None:
                self.greeting = greeting

        kernel = Kernel(converter=UpperConverter())
        kernel.add_component(Greeter, parameters={"greeting": "hello"})

        assert kernel.resolve(Greeter).greeting == "HELLO"
        assert kernel.converter.context.depth == 0
