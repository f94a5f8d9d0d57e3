"""Shared pytest fixtures for dikernel tests."""

import pytest

from dikernel.kernel import Kernel


@pytest.fixture()
def kernel() -> Kernel:
    """Kernel without lazy registration."""
    return Kernel()


@pytest.fixture()
def autoregister_kernel() -> Kernel:
    """Kernel that registers concrete classes on first use."""
    return Kernel(autoregister_concrete_types=True)
