"""
Configuration Store.

Holds the active ConfigSnapshot and swaps it atomically on reload:
1. Load all documents through a ConfigLoader (off the hot path)
2. Validate and build a new snapshot
3. Publish it with a single reference assignment

Readers never lock; they grab the snapshot reference once per evaluation
and keep using that version. A lock only serialises concurrent reloads.
A reload that fails validation is rejected and the last-known-good
snapshot keeps serving.
"""

import threading
from dataclasses import replace
from typing import Optional

import structlog

from policyengine.config import Settings
from policyengine.engine.trust import TrustScorer
from policyengine.errors import ConfigInvalidError, NoSnapshotError
from policyengine.store.loader import ConfigLoader, loader_from_settings
from policyengine.store.snapshot import ConfigSnapshot, build_snapshot

logger = structlog.get_logger(__name__)


class ConfigStore:

    def __init__(self, loader: Optional[ConfigLoader] = None, cfg: Optional[Settings] = None):
        from policyengine.config import settings as default_settings

        self.settings = cfg or default_settings
        self._loader = loader or loader_from_settings(self.settings)
        self._snapshot: Optional[ConfigSnapshot] = None
        self._generation = 0
        self._fingerprint: Optional[tuple] = None
        self._reload_lock = threading.Lock()
        self.last_error: Optional[ConfigInvalidError] = None

    @property
    def snapshot(self) -> ConfigSnapshot:
        snapshot = self._snapshot
        if snapshot is None:
            raise NoSnapshotError()
        return snapshot

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def loader(self) -> ConfigLoader:
        return self._loader

    def reload(self, loader: Optional[ConfigLoader] = None) -> ConfigSnapshot:
        """
        Load, validate and publish a new snapshot.

        Raises ConfigInvalidError if the new documents are invalid; the
        previously active snapshot (if any) stays active.
        """
        loader = loader or self._loader
        with self._reload_lock:
            fingerprint = self._fingerprint_of(loader)
            try:
                snapshot = build_snapshot(
                    loader.load_foundation(),
                    loader.load_governance(),
                    loader.load_feature_flags(),
                    loader.load_protection(),
                    loader.load_compliance(),
                    weight_tolerance=self.settings.weight_tolerance,
                    scorer=TrustScorer(
                        response_time_scale_hours=self.settings.response_time_scale_hours,
                        rating_scale=self.settings.rating_scale,
                    ),
                )
            except ConfigInvalidError as exc:
                self.last_error = exc
                logger.error(
                    "config_reload_rejected",
                    error=exc.message,
                    document=exc.document,
                    path=exc.path,
                    serving_generation=self._generation if self._snapshot else None,
                )
                raise

            self._generation += 1
            snapshot = replace(snapshot, generation=self._generation)
            self._snapshot = snapshot
            self._loader = loader
            self._fingerprint = fingerprint
            self.last_error = None

        logger.info(
            "config_snapshot_activated",
            generation=snapshot.generation,
            version=snapshot.version,
        )
        return snapshot

    def load(self) -> ConfigSnapshot:
        """Initial load. Same as reload() with the configured loader."""
        return self.reload()

    def reload_if_changed(self) -> bool:
        """
        Reload when the loader's fingerprint moved.

        Loaders without a fingerprint (packaged defaults) never change.
        Returns True if a new snapshot was published.
        """
        changed_since = getattr(self._loader, "changed_since", None)
        if not callable(changed_since) or not changed_since(self._fingerprint):
            return False
        self.reload()
        return True

    def activate(self, snapshot: ConfigSnapshot) -> ConfigSnapshot:
        """
        Publish an already-built snapshot (e.g. from tests or a custom pipeline).

        The snapshot did not come from the loader, so the loader fingerprint
        is forgotten and the next reload_if_changed() reloads from source.
        """
        with self._reload_lock:
            self._generation += 1
            snapshot = replace(snapshot, generation=self._generation)
            self._snapshot = snapshot
            self._fingerprint = None
            self.last_error = None
        logger.info("config_snapshot_activated", generation=snapshot.generation, version=snapshot.version)
        return snapshot

    @staticmethod
    def _fingerprint_of(loader: ConfigLoader) -> Optional[tuple]:
        fingerprint = getattr(loader, "fingerprint", None)
        return fingerprint() if callable(fingerprint) else None
