"""Map ``resource_access.<resource>.roles`` token claims to authorities.

Tokens are expected to be validated upstream; only the decoded claims are
inspected here.
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any, Mapping, Optional

from pydantic import BaseModel

ROLE_PREFIX = "ROLE_"


class SecuritySettings(BaseModel):
    resource_name: str = "viewer-hub"


@lru_cache
def get_settings() -> SecuritySettings:
    return SecuritySettings(resource_name=os.getenv("SECURITY_RESOURCE_NAME", "viewer-hub"))


def extract_authorities(claims: Mapping[str, Any], resource: Optional[str] = None) -> set[str]:
    resource = resource or get_settings().resource_name
    resource_access = claims.get("resource_access")
    if not isinstance(resource_access, Mapping):
        return set()
    section = resource_access.get(resource)
    if not isinstance(section, Mapping):
        return set()
    roles = section.get("roles") or []
    if not isinstance(roles, (list, tuple)):
        return set()
    return {f"{ROLE_PREFIX}{role}" for role in roles if isinstance(role, str) and role}
