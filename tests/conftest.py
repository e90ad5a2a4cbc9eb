import pytest

from pact_layout.server import _diagrams


@pytest.fixture(autouse=True)
def _clear_diagrams():
    """Clear diagrams between tests (module-level setup_function does not run for class-based tests)."""
    _diagrams.clear()
    yield
