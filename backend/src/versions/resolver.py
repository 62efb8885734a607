"""Find the published release a client version must use."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from errors import ConfigurationError, NoCompatibleVersion, ValidationError

from .models import MinimalReleaseVersion, VersionResolution
from .util import (
    compare_versions,
    is_valid_version,
    retrieve_qualifier_without_version,
    retrieve_version_without_qualifier,
)

logger = logging.getLogger(__name__)


def load_mapping_file(path: Path) -> tuple[MinimalReleaseVersion, ...]:
    """Read ``[{"releaseVersion", "minimalVersion", "i18nVersion"}, ...]``."""

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ConfigurationError(f"Unable to read version mapping {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"Invalid JSON in version mapping {path}: {exc}") from exc
    if not isinstance(raw, list):
        raise ConfigurationError(f"Version mapping {path} must be a list of entries")
    try:
        return tuple(MinimalReleaseVersion.model_validate(item).cleaned() for item in raw)
    except PydanticValidationError as exc:
        raise ConfigurationError(f"Invalid version mapping entry in {path}: {exc}") from exc


class VersionCompatibilityResolver:
    """Holds the published version table as an immutable tuple.

    :meth:`refresh` swaps the whole table; lookups read it once, so a lookup
    never mixes entries of two tables.
    """

    def __init__(self, entries: Iterable[MinimalReleaseVersion] = ()) -> None:
        self._entries: tuple[MinimalReleaseVersion, ...] = ()
        self.refresh(entries)

    @property
    def entries(self) -> tuple[MinimalReleaseVersion, ...]:
        return self._entries

    def refresh(self, entries: Iterable[MinimalReleaseVersion]) -> None:
        cleaned = tuple(entry.cleaned() for entry in entries)
        for entry in cleaned:
            if not (is_valid_version(entry.release_version) and is_valid_version(entry.minimal_version)):
                raise ConfigurationError(
                    f"Invalid version entry {entry.release_version} -> {entry.minimal_version}"
                )
        self._entries = cleaned
        if cleaned:
            logger.info("Version table replaced (%d entries)", len(cleaned))

    def refresh_from_file(self, path: Path) -> None:
        self.refresh(load_mapping_file(path))

    def resolve_minimal_version(self, client_version: Optional[str]) -> VersionResolution:
        if not is_valid_version(client_version):
            raise ValidationError(f"Invalid client version: {client_version!r}")
        version = retrieve_version_without_qualifier(client_version)
        qualifier = retrieve_qualifier_without_version(client_version) or None

        entries = self._entries
        if not entries or all(compare_versions(version, e.minimal_version) < 0 for e in entries):
            raise NoCompatibleVersion(client_version)

        candidates = [e for e in entries if compare_versions(e.release_version, version) <= 0]
        if not candidates:
            raise NoCompatibleVersion(client_version)

        entry = candidates[0]
        for candidate in candidates[1:]:
            if compare_versions(candidate.release_version, entry.release_version) > 0:
                entry = candidate
        return VersionResolution(
            client_version=client_version,
            qualifier=qualifier,
            entry=entry,
            upgrade_required=compare_versions(version, entry.minimal_version) < 0,
        )


version_resolver = VersionCompatibilityResolver()
