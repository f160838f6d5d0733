"""SDD DevFlow: scaffold a spec-driven development workflow into a project."""

__version__ = "0.1.0"
