"""Mini README: Interactive interfaces (web/CLI) for the bazaar.

Exports the FastAPI application factory and the services container it wires
together. The Typer CLI lives in ``bazaar_control.py`` at the repository root.
"""

from .web_app import BazaarServices, create_application

__all__ = ["BazaarServices", "create_application"]
