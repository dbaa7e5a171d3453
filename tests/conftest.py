"""
Pytest configuration and shared fixtures for all tensorexpr tests.

The lowering driver is stateless and shared for the whole session; backends
keep per-execution buffer state and are created fresh per test.
"""

import sys
import pytest
from typing import Any, Dict, Optional, Sequence
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))
from tensorexpr.backends.numpy import NumPyBackend
from tensorexpr.backends.base import ExecutionResult
from tensorexpr.compiler.driver import LoweringDriver
from tensorexpr.shared.defid import Resolver


# =============================================================================
# Session-scoped fixtures (shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def session_driver():
    """Session-scoped lowering driver; creates fresh pass instances per lowering."""
    return LoweringDriver()


# =============================================================================
# Function-scoped fixtures (default - one per test)
# =============================================================================

@pytest.fixture(scope="class")
def driver(session_driver):
    """Class-scoped driver - returns the session driver (stateless, safe to share)."""
    return session_driver


@pytest.fixture
def backend():
    """Fresh NumPy backend per test."""
    return NumPyBackend()


@pytest.fixture
def resolver():
    """Fresh DefId allocator, so tests can build IR with predictable ids."""
    return Resolver(krate=1)


# =============================================================================
# Helper fixtures
# =============================================================================

@pytest.fixture
def lower_and_execute(session_driver):
    """
    Lower output tensors and run them on a fresh NumPy backend.

    Lowering diagnostics fail the test immediately with the formatted errors.
    """
    def _lower_and_execute(
        tensors: Sequence,
        inputs: Optional[Dict[str, Any]] = None,
        var_values: Optional[Dict[Any, Any]] = None,
        free_vars: Sequence = (),
    ) -> ExecutionResult:
        result = session_driver.lower(tensors, free_vars=free_vars)
        assert result.success, f"Lowering failed: {result.get_errors()}"
        return NumPyBackend().execute(result.stmt, inputs or {}, var_values)

    return _lower_and_execute


# =============================================================================
# Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers for test organization."""
    config.addinivalue_line(
        "markers", "integration: marks tests that lower and execute kernels end to end"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
