"""Bearer token claim helpers."""

from .roles import ROLE_PREFIX, extract_authorities, get_settings  # noqa: F401
