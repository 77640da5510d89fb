"""Test configuration for pytest."""

import logging
import os
import pytest


@pytest.fixture(autouse=True)
def configure_test_logging():
    """Configure logging for tests to be minimal."""
    os.environ['STAMPCUT_LOG_LEVEL'] = 'WARNING'

    logging.getLogger().setLevel(logging.WARNING)

    # The refiner warns about odd residual regions, which some tests provoke on purpose
    for logger_name in ['stampcut.segmentation.refine', 'stampcut.segmentation.extraction']:
        logging.getLogger(logger_name).setLevel(logging.ERROR)
