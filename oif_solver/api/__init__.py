"""
HTTP API for the solver.
"""
from .main import create_app

__all__ = ["create_app"]
