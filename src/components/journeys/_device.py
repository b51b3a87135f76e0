"""
User-agent parsing into DeviceInfo.

Ordered substring checks; the first match wins.
"""

from __future__ import annotations

import re

from src.core.entities import UNKNOWN, DeviceInfo, DeviceType

_TABLET_RE = re.compile(r"(tablet|ipad|playbook|silk)|(android(?!.*mobi))", re.IGNORECASE)
_MOBILE_RE = re.compile(
    r"Mobile|Android|iP(hone|od)|IEMobile|BlackBerry|Kindle|Silk-Accelerated|(hpw|web)OS|Opera M(obi|ini)"
)
_IPHONE_MODEL_RE = re.compile(r"iPhone(\d{1,2}[,_]\d)", re.IGNORECASE)
_SAMSUNG_RE = re.compile(r"SM-([A-Z0-9]+)", re.IGNORECASE)
_PIXEL_RE = re.compile(r"Pixel (\d+[a-z]*)", re.IGNORECASE)
_ONEPLUS_RE = re.compile(r"ONEPLUS ([A-Z0-9]+)", re.IGNORECASE)


def _device_type(user_agent: str) -> DeviceType:
    if _TABLET_RE.search(user_agent):
        return "tablet"
    if _MOBILE_RE.search(user_agent):
        return "mobile"
    return "desktop"


def _os(ua: str) -> str:
    # iOS and Android UAs also mention "mac"/"linux", so they go first.
    if "windows" in ua:
        return "Windows"
    if "iphone" in ua or "ipad" in ua:
        return "iOS"
    if "android" in ua:
        return "Android"
    if "mac" in ua:
        return "macOS"
    if "linux" in ua:
        return "Linux"
    return UNKNOWN


def _browser(ua: str) -> str:
    if "edg" in ua:
        return "Edge"
    if "opr" in ua or "opera" in ua:
        return "Opera"
    if "chrome" in ua:
        return "Chrome"
    if "firefox" in ua:
        return "Firefox"
    if "safari" in ua:
        return "Safari"
    return UNKNOWN


def _android_device_name(user_agent: str, ua: str) -> str:
    if "samsung" in ua or "sm-" in ua:
        m = _SAMSUNG_RE.search(user_agent)
        return f"Samsung {m.group(1)}" if m else "Samsung"
    if "pixel" in ua:
        m = _PIXEL_RE.search(user_agent)
        return f"Google Pixel {m.group(1)}" if m else "Google Pixel"
    if "oneplus" in ua:
        m = _ONEPLUS_RE.search(user_agent)
        return f"OnePlus {m.group(1)}" if m else "OnePlus"
    if "redmi" in ua:
        return "Xiaomi Redmi"
    if "mi " in ua:
        return "Xiaomi"
    return "Android Device"


def _device_name(user_agent: str, ua: str) -> str:
    if "macintosh" in ua:
        return "Mac"
    if "iphone" in ua:
        m = _IPHONE_MODEL_RE.search(user_agent)
        return f"iPhone {re.sub(r'[,_]', '.', m.group(1), count=1)}" if m else "iPhone"
    if "ipad" in ua:
        return "iPad"
    if "android" in ua:
        return _android_device_name(user_agent, ua)
    if "windows" in ua:
        return "Microsoft Surface" if "surface" in ua else "Windows PC"
    if "linux" in ua:
        return "Linux PC"
    return "Unknown Device"


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    """Classify a user-agent string. Empty input yields an unknown desktop."""
    if not user_agent:
        return DeviceInfo()
    ua = user_agent.lower()
    return DeviceInfo(
        type=_device_type(user_agent),
        os=_os(ua),
        browser=_browser(ua),
        device_name=_device_name(user_agent, ua),
    )
