"""Mock commerce API server for testing."""

from .app import create_app, create_mock_commerce_app

__all__ = ["create_app", "create_mock_commerce_app"]
