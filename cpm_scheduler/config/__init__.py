"""Configuration for the CPM scheduler."""

from .settings import Settings, settings

__all__ = [
    'Settings',
    'settings',
]
