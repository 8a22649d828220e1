"""Pytest configuration for the Hybrid DEX tests."""

import os

import pytest


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "devnet: Read-only tests against a live cluster")


def pytest_collection_modifyitems(config, items):
    """Skip live-cluster tests unless DEVNET_TESTS is set."""
    if "DEVNET_TESTS" in os.environ:
        return

    skip_devnet = pytest.mark.skip(reason="Devnet tests skipped by default. Set DEVNET_TESTS=1")
    for item in items:
        if "devnet" in item.keywords:
            item.add_marker(skip_devnet)
