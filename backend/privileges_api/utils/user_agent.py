"""Extraction of agent metadata from webhook ``User-Agent`` headers."""

from __future__ import annotations

import re
from typing import Any

# Example: PrivilegesAgent/479 CFNetwork/3826.500.111.1.1 Darwin/24.4.0
_CLIENT_VERSION = re.compile(r"PrivilegesAgent/(\d+)")
_CF_NETWORK = re.compile(r"CFNetwork/(\S+)")
_DARWIN = re.compile(r"Darwin/(\S+)")

DEFAULT_CLIENT_VERSION = 1


def apply_user_agent_defaults(data: dict[str, Any], user_agent: str) -> dict[str, Any]:
    """Fill agent metadata missing from ``data`` using the user agent string."""

    enriched = dict(data)

    if not enriched.get("client_version"):
        match = _CLIENT_VERSION.search(user_agent)
        enriched["client_version"] = int(match.group(1)) if match else DEFAULT_CLIENT_VERSION

    if not enriched.get("cf_network_version"):
        match = _CF_NETWORK.search(user_agent)
        enriched["cf_network_version"] = match.group(1) if match else None

    if not enriched.get("platform"):
        enriched["platform"] = "macOS" if "Darwin" in user_agent else (user_agent or "Unknown")

    if not enriched.get("os_version"):
        match = _DARWIN.search(user_agent)
        enriched["os_version"] = match.group(1) if match else None

    return enriched
