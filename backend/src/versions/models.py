"""Published release to minimal version mapping entries."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .util import (
    count_digits_groups,
    extract_three_groups_of_four_groups_version,
    retrieve_version_without_qualifier,
)


def _clean(version: str) -> str:
    numeric = retrieve_version_without_qualifier(version) or version
    if count_digits_groups(numeric) == 4:
        # Build numbers such as 4.2.0.1 map onto their 4.2.0 release
        return extract_three_groups_of_four_groups_version(numeric)
    return numeric


class MinimalReleaseVersion(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    release_version: str
    minimal_version: str
    # Accepts the ``i18nVersion`` key of the mapping file
    i18n_version: Optional[str] = Field(default=None, alias="i18nVersion")

    def cleaned(self) -> "MinimalReleaseVersion":
        """Copy with qualifiers stripped from the release and minimal versions."""

        return self.model_copy(
            update={
                "release_version": _clean(self.release_version),
                "minimal_version": _clean(self.minimal_version),
            }
        )


class VersionResolution(BaseModel):
    client_version: str
    qualifier: Optional[str] = None
    entry: MinimalReleaseVersion
    upgrade_required: bool = False
