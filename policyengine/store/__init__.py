"""
Configuration Store.

Components:
- loader: ConfigLoader protocol, packaged and directory JSON loaders
- snapshot: validated immutable ConfigSnapshot and its builder
- store: atomic snapshot publication and reload
"""

from policyengine.store.loader import (
    ConfigLoader,
    DirectoryConfigLoader,
    PackagedConfigLoader,
    loader_from_settings,
)
from policyengine.store.snapshot import ConfigSnapshot, build_snapshot
from policyengine.store.store import ConfigStore

__all__ = [
    "ConfigLoader",
    "ConfigSnapshot",
    "ConfigStore",
    "DirectoryConfigLoader",
    "PackagedConfigLoader",
    "build_snapshot",
    "loader_from_settings",
]
