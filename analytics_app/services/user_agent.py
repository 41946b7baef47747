"""
User-agent classification into device, browser and OS.

Coarse: first matching pattern wins, in the order below.
"""

import re
from typing import NamedTuple, Optional


class DeviceInfo(NamedTuple):
    device: str
    browser: str
    os: str


_MOBILE = re.compile(r"Mobile|Android|iPhone|iPad")
_TABLET = re.compile(r"iPad")

# Chrome UAs also contain "Safari", Edge UAs contain "Chrome"
_BROWSERS = (
    ("Chrome", re.compile(r"Chrome")),
    ("Firefox", re.compile(r"Firefox")),
    ("Safari", re.compile(r"Safari")),
    ("Edge", re.compile(r"Edge")),
    ("Opera", re.compile(r"Opera")),
)

# Mobile platforms first: Android UAs contain "Linux", iOS UAs contain "Mac OS X"
_OPERATING_SYSTEMS = (
    ("Windows", re.compile(r"Windows")),
    ("Android", re.compile(r"Android")),
    ("iOS", re.compile(r"iPhone|iPad")),
    ("macOS", re.compile(r"Mac OS X")),
    ("Linux", re.compile(r"Linux")),
)


def _first_match(patterns, user_agent: str) -> str:
    for name, pattern in patterns:
        if pattern.search(user_agent):
            return name
    return "Unknown"


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    """
    Classify a user-agent string.

    A missing user agent is reported as a desktop with unknown browser and OS.
    """
    if not user_agent:
        return DeviceInfo(device="Desktop", browser="Unknown", os="Unknown")

    device = "Desktop"
    if _MOBILE.search(user_agent):
        device = "Tablet" if _TABLET.search(user_agent) else "Mobile"

    return DeviceInfo(
        device=device,
        browser=_first_match(_BROWSERS, user_agent),
        os=_first_match(_OPERATING_SYSTEMS, user_agent),
    )
