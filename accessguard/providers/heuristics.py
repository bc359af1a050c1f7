"""
Keyword heuristics for providers that only report ISP/organization names.
"""

from typing import Iterable

HOSTING_KEYWORDS = (
    'hosting', 'server', 'datacenter', 'data center', 'cloud',
    'digital ocean', 'digitalocean', 'amazon', 'google cloud',
    'microsoft azure', 'ovh', 'hetzner', 'linode',
)

VPN_KEYWORDS = HOSTING_KEYWORDS + (
    'vpn', 'proxy', 'tor',
    'expressvpn', 'nordvpn', 'surfshark', 'cyberghost',
)


def contains_keyword(value: str, keywords: Iterable[str]) -> bool:
    """Case-insensitive substring match of any keyword in value."""
    if not value:
        return False
    value = value.lower()
    return any(keyword in value for keyword in keywords)


def looks_like_proxy(*names: str) -> bool:
    """Guess VPN/proxy use from ISP or organization names."""
    return any(contains_keyword(name, VPN_KEYWORDS) for name in names)


def looks_like_hosting(*names: str) -> bool:
    """Guess hosting/datacenter origin from ISP or organization names."""
    return any(contains_keyword(name, HOSTING_KEYWORDS) for name in names)
