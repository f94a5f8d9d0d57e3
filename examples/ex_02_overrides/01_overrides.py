"""Overrides: decorators, ``${key}`` references, and typed inline values."""

from __future__ import annotations

from dikernel import Kernel


class Logger:
    def log(self, message: str) -> str:
        raise NotImplementedError


class ConsoleLogger(Logger):
    def log(self, message: str) -> str:
        return f"console: {message}"


class FileLogger(Logger):
    def log(self, message: str) -> str:
        return f"file: {message}"


class TimestampLogger(Logger):
    def __init__(self, inner: Logger) -> None:
        self.inner = inner

    def log(self, message: str) -> str:
        return f"[ts] {self.inner.log(message)}"


class Job:
    def __init__(self, logger: Logger) -> None:
        self.logger = logger


def main() -> None:
    kernel = Kernel()
    kernel.add_component(TimestampLogger, service=Logger, name="timestamp")
    kernel.add_component(ConsoleLogger, service=Logger, name="console")
    kernel.add_component(FileLogger, service=Logger, name="file")
    kernel.add_component(Job, name="job", parameters={"logger": "${file}"})
    kernel.add_component(Job, name="audited-job", custom_dependencies={Logger: ConsoleLogger()})

    print(kernel.resolve(Logger).log("hi"))  # => [ts] console: hi
    print(kernel.resolve(Job, key="job").logger.log("run"))  # => file: run
    print(kernel.resolve(Job, key="audited-job").logger.log("audit"))  # => console: audit


if __name__ == "__main__":
    main()
