"""
Pytest configuration and fixtures for TreeMirror tests.

Specialized fixtures are organized in the fixtures/ directory:
- fixtures.store: In-memory store trees and mirror instances
- fixtures.watcher: Change callbacks and watched mirrors
"""

import pytest

# Load fixture modules
pytest_plugins = [
    "tests.fixtures.store",
    "tests.fixtures.watcher",
]


@pytest.fixture
def payload_500():
    """500-byte text payload."""
    return "x" * 500
