"""
Device classification from connection metadata.

Derives a coarse device class, operating system and browser from the raw
User-Agent header of a connecting client.
"""

import re
from dataclasses import dataclass

_TABLET = re.compile(r"ipad|tablet|kindle|silk|playbook|(android(?!.*mobile))", re.IGNORECASE)
_MOBILE = re.compile(r"mobi|iphone|ipod|android.*mobile|windows phone|blackberry|opera mini", re.IGNORECASE)

_OS_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("Windows", re.compile(r"windows nt|windows phone", re.IGNORECASE)),
    ("iOS", re.compile(r"iphone|ipad|ipod", re.IGNORECASE)),
    ("macOS", re.compile(r"mac os x|macintosh", re.IGNORECASE)),
    ("Android", re.compile(r"android", re.IGNORECASE)),
    ("ChromeOS", re.compile(r"cros", re.IGNORECASE)),
    ("Linux", re.compile(r"linux", re.IGNORECASE)),
]

# Order matters: Edge and Opera include "Chrome", Chrome includes "Safari"
_BROWSER_PATTERNS: list[tuple[str, re.Pattern[str]]] = [
    ("Edge", re.compile(r"edg(e|a|ios)?/", re.IGNORECASE)),
    ("Opera", re.compile(r"opr/|opera", re.IGNORECASE)),
    ("Firefox", re.compile(r"firefox|fxios", re.IGNORECASE)),
    ("Chrome", re.compile(r"chrome|crios|chromium", re.IGNORECASE)),
    ("Safari", re.compile(r"safari", re.IGNORECASE)),
]

UNKNOWN = "Unknown"


@dataclass(frozen=True)
class DeviceInfo:
    """What the server knows about the device behind a connection."""

    device_type: str
    os: str
    browser: str
    ip_address: str | None = None
    user_agent: str | None = None


def classify_user_agent(user_agent: str | None, ip_address: str | None = None) -> DeviceInfo:
    """
    Classify a raw User-Agent string.

    Args:
        user_agent: The User-Agent header, possibly missing
        ip_address: Client address to carry along

    Returns:
        DeviceInfo with device type ``mobile``, ``tablet`` or ``desktop``
    """
    ua = user_agent or ""
    if _TABLET.search(ua):
        device_type = "tablet"
    elif _MOBILE.search(ua):
        device_type = "mobile"
    else:
        device_type = "desktop"

    os_name = next((name for name, pattern in _OS_PATTERNS if pattern.search(ua)), UNKNOWN)
    browser = next((name for name, pattern in _BROWSER_PATTERNS if pattern.search(ua)), UNKNOWN)

    return DeviceInfo(
        device_type=device_type,
        os=os_name,
        browser=browser,
        ip_address=ip_address,
        user_agent=user_agent,
    )
