"""API region configuration."""

from enum import Enum
from typing import Dict, Optional, Union

from ..models.errors import ConfigurationError


class Region(str, Enum):
    """Regions the sandbox API is deployed in."""

    US = "US"
    EU = "EU"
    AP = "AP"


API_URLS: Dict[Region, str] = {
    Region.US: "https://api.buddy.works",
    Region.EU: "https://api.eu.buddy.works",
    Region.AP: "https://api.asia.buddy.works",
}


def parse_region(value: Optional[Union[str, Region]]) -> Region:
    """Parse a region name case-insensitively. Blank values mean US."""
    if isinstance(value, Region):
        return value
    if value is None or not value.strip():
        return Region.US

    normalized = value.strip().upper()
    try:
        return Region(normalized)
    except ValueError:
        valid = ", ".join(region.value for region in Region)
        raise ConfigurationError(
            f"Invalid region: {value!r}. Valid regions are: {valid}"
        ) from None


def get_api_url(region: Union[str, Region]) -> str:
    """Get the API base URL for a region."""
    return API_URLS[parse_region(region)]
