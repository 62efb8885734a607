"""Settings for the version compatibility table."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import BaseModel


class VersionSettings(BaseModel):
    mapping_path: Optional[Path] = None


@lru_cache
def get_settings() -> VersionSettings:
    mapping_path = os.getenv("VERSION_MAPPING_PATH")
    return VersionSettings(mapping_path=Path(mapping_path) if mapping_path else None)
