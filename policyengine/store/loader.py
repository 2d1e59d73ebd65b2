"""
Configuration Loaders.

The store consumes any object implementing ConfigLoader. Two JSON-backed
implementations ship with the engine:
- PackagedConfigLoader  - default documents bundled with the package
- DirectoryConfigLoader - documents in a directory on disk, with a
                          fingerprint for change detection

Parse and schema errors surface as ConfigInvalidError (CONFIG_PARSE_ERROR)
so the store treats them like any other invalid snapshot.
"""

import os
from importlib import resources
from pathlib import Path
from typing import Optional, Protocol, TypeVar, runtime_checkable

import structlog
from pydantic import BaseModel, ValidationError

from policyengine.config import Settings
from policyengine.errors import ConfigInvalidError, ErrorCode
from policyengine.schemas.compliance import Compliance
from policyengine.schemas.flags import FeatureFlagSet
from policyengine.schemas.foundation import Foundation
from policyengine.schemas.governance import Governance
from policyengine.schemas.protection import Protection

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)

DOCUMENTS: dict[str, str] = {
    "foundation": "foundation.json",
    "governance": "governance.json",
    "feature_flags": "feature_flags.json",
    "protection": "protection.json",
    "compliance": "compliance.json",
}


@runtime_checkable
class ConfigLoader(Protocol):
    def load_foundation(self) -> Foundation: ...

    def load_governance(self) -> Governance: ...

    def load_feature_flags(self) -> FeatureFlagSet: ...

    def load_protection(self) -> Protection: ...

    def load_compliance(self) -> Compliance: ...


class JsonDocumentLoader:
    """Base for loaders that read one JSON document per layer."""

    source: str = "json"

    def _read(self, filename: str) -> str:
        raise NotImplementedError

    def _parse(self, document: str, model: type[M]) -> M:
        filename = DOCUMENTS[document]
        try:
            raw = self._read(filename)
        except OSError as exc:
            raise ConfigInvalidError(
                f"Cannot read {filename}: {exc}",
                document=document,
                code=ErrorCode.CONFIG_PARSE_ERROR,
            ) from exc
        try:
            return model.model_validate_json(raw)
        except ValidationError as exc:
            raise ConfigInvalidError(
                f"{filename} failed schema validation",
                document=document,
                details={"errors": exc.errors(include_url=False, include_context=False)},
                code=ErrorCode.CONFIG_PARSE_ERROR,
            ) from exc

    def load_foundation(self) -> Foundation:
        return self._parse("foundation", Foundation)

    def load_governance(self) -> Governance:
        return self._parse("governance", Governance)

    def load_feature_flags(self) -> FeatureFlagSet:
        return self._parse("feature_flags", FeatureFlagSet)

    def load_protection(self) -> Protection:
        return self._parse("protection", Protection)

    def load_compliance(self) -> Compliance:
        return self._parse("compliance", Compliance)


class PackagedConfigLoader(JsonDocumentLoader):
    """Default documents shipped in policyengine/store/defaults."""

    source = "packaged"

    def _read(self, filename: str) -> str:
        return (
            resources.files("policyengine.store")
            .joinpath("defaults")
            .joinpath(filename)
            .read_text(encoding="utf-8")
        )


class DirectoryConfigLoader(JsonDocumentLoader):
    """
    Documents read from a directory.

    fingerprint() changes whenever any document's mtime or size changes;
    the store uses it for reload_if_changed().
    """

    source = "directory"

    def __init__(self, path: str | os.PathLike):
        self.path = Path(path)

    def _read(self, filename: str) -> str:
        return (self.path / filename).read_text(encoding="utf-8")

    def fingerprint(self) -> tuple:
        parts = []
        for filename in DOCUMENTS.values():
            try:
                stat = (self.path / filename).stat()
            except FileNotFoundError:
                parts.append((filename, None, None))
                continue
            parts.append((filename, stat.st_mtime_ns, stat.st_size))
        return tuple(parts)

    def changed_since(self, fingerprint: Optional[tuple]) -> bool:
        return fingerprint is None or self.fingerprint() != fingerprint


def loader_from_settings(cfg: Optional[Settings] = None) -> ConfigLoader:
    """Directory loader when POLICY_CONFIG_DIR is set, packaged defaults otherwise."""
    from policyengine.config import settings as default_settings

    cfg = cfg or default_settings
    if cfg.config_dir:
        logger.info("config_loader_selected", source="directory", path=cfg.config_dir)
        return DirectoryConfigLoader(cfg.config_dir)
    logger.info("config_loader_selected", source="packaged")
    return PackagedConfigLoader()
