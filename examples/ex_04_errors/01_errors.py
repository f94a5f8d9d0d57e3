"""Errors: cycles, missing dependencies, and conversion failures."""

from __future__ import annotations

from dikernel import (
    DIKernelCircularDependencyError,
    DIKernelConversionError,
    DIKernelMissingDependencyError,
    Kernel,
)


class Logger:
    pass


class TimestampLogger(Logger):
    def __init__(self, inner: Logger) -> None:
        self.inner = inner


class Report:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger


class Server:
    def __init__(self, port: int) -> None:
        self.port = port


def main() -> None:
    cyclic = Kernel()
    cyclic.add_component(TimestampLogger, service=Logger, name="timestamp")
    try:
        cyclic.resolve(Logger)
    except DIKernelCircularDependencyError as error:
        print(str(error).splitlines()[0])  # => Cycle detected in configuration.

    missing = Kernel()
    missing.add_component(Report, name="report")
    try:
        missing.resolve(Report)
    except DIKernelMissingDependencyError as error:
        print(f"missing={error.component_name}")  # => missing=report

    misconfigured = Kernel()
    misconfigured.add_component(Server, parameters={"port": "eighty"})
    try:
        misconfigured.resolve(Server)
    except DIKernelConversionError as error:
        print(f"conversion_failed={error.value}")  # => conversion_failed=eighty


if __name__ == "__main__":
    main()
