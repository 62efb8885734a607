"""Client version compatibility."""

from .models import MinimalReleaseVersion, VersionResolution  # noqa: F401
from .resolver import VersionCompatibilityResolver, load_mapping_file, version_resolver  # noqa: F401
