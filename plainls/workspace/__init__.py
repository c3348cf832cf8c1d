"""Workspace state for plainls."""
from .documents import Document, DocumentNotOpen, DocumentStore
from .settings_cache import Settings, SettingsCache

__all__ = ['Document', 'DocumentNotOpen', 'DocumentStore', 'Settings', 'SettingsCache']
