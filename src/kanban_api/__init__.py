"""
Kanban Task API package.

Exposes the application factory; `python -m kanban_api` serves the API
configured from environment variables.
"""

from .main import create_app, run  # noqa: F401

__version__ = "0.1.0"
