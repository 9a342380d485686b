import pytest
import structlog


@pytest.fixture(autouse=True)
def _reset_structlog():
    # configure_logging() is process-global; keep each test's level and processors isolated.
    yield
    structlog.reset_defaults()
