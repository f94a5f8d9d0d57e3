"""Quickstart: register components and resolve an object graph.

Components are registered once; every ``resolve`` call builds a fresh graph.
Inline parameters configure literal values and ambient ``arguments`` override
them for a single request.
"""

from __future__ import annotations

from dikernel import Kernel


class Clock:
    def now(self) -> str:
        return "12:00"


class Greeter:
    def __init__(self, clock: Clock, greeting: str) -> None:
        self.clock = clock
        self.greeting = greeting

    def greet(self, name: str) -> str:
        return f"{self.greeting}, {name} ({self.clock.now()})"


def main() -> None:
    kernel = Kernel()
    kernel.add_component(Clock)
    kernel.add_component(Greeter, parameters={"greeting": "Hello"})

    greeter = kernel.resolve(Greeter)
    print(greeter.greet("world"))  # => Hello, world (12:00)
    print(f"same_instance={kernel.resolve(Greeter) is greeter}")  # => same_instance=False

    other = kernel.resolve(Greeter, arguments={"greeting": "Hi"})
    print(other.greet("there"))  # => Hi, there (12:00)


if __name__ == "__main__":
    main()
