"""Dependency injection container assembly utilities."""

from convai_bridge.dependency_injection.container import build_container

__all__ = ["build_container"]
