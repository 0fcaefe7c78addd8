"""Mock upstream server for demos and tests."""

from .app import create_app, create_mock_app

__all__ = ["create_app", "create_mock_app"]
