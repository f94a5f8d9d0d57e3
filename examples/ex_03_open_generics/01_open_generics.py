"""Open generics: closed registrations win, strategies choose generic arguments."""

from __future__ import annotations

from typing import Generic, TypeVar, get_args

from dikernel import Kernel, repeat_generic_arguments

T = TypeVar("T")
K = TypeVar("K")
V = TypeVar("V")


class User:
    pass


class Order:
    pass


class Repository(Generic[T]):
    pass


class SqlRepository(Repository[T]):
    pass


class UserRepository(Repository[User]):
    pass


class KeyValueRepository(Repository[K], Generic[K, V]):
    pass


class Service(Generic[T]):
    def __init__(self, repository: Repository[T]) -> None:
        self.repository = repository


def main() -> None:
    kernel = Kernel()
    kernel.add_component(SqlRepository, service=Repository, name="sql")
    kernel.add_component(UserRepository, service=Repository[User], name="users")
    kernel.add_component(Service, name="service")

    print(type(kernel.resolve(Service[Order]).repository).__name__)  # => SqlRepository
    print(type(kernel.resolve(Service[User]).repository).__name__)  # => UserRepository

    pairs = Kernel()
    pairs.add_component(
        KeyValueRepository,
        service=Repository,
        name="key-value",
        matching_strategy=repeat_generic_arguments,
    )
    repository = pairs.resolve(Repository[int])
    arguments = [argument.__name__ for argument in get_args(repository.__orig_class__)]
    print(f"key_value_args={arguments}")  # => key_value_args=['int', 'int']


if __name__ == "__main__":
    main()
