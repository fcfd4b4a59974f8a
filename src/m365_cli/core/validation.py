"""Option value checks shared by commands."""

import re
from typing import Union

GUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)


def is_valid_guid(value) -> bool:
    """Check whether value is a GUID in 8-4-4-4-12 hex form."""
    if not value:
        return False
    return GUID_PATTERN.fullmatch(str(value)) is not None


def is_valid_sharepoint_url(url) -> Union[bool, str]:
    """Check a SharePoint Online URL.

    Returns:
        False for an empty value, an error message for a URL that is not
        https, True otherwise
    """
    if not url:
        return False

    if not url.startswith('https://'):
        return f"{url} is not a valid SharePoint Online site URL"

    return True
