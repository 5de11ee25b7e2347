"""Top-level package for the staffing admin service.

Accounts, projects and project technologies plus the links between them.
"""
__all__ = ["api", "core", "pipeline", "repo"]
__version__ = "0.1.0"
