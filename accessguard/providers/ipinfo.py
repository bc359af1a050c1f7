"""
IPinfo reputation provider.

ipinfo.io includes a privacy block (proxy, VPN, Tor, hosting) only on
plans that carry it. Without that block, proxy and hosting use are
inferred from the organization name.
"""

from typing import Dict, Any
from .base import ReputationProvider, Request, to_float, text
from .heuristics import looks_like_proxy, looks_like_hosting
from ..errors import ProviderRejection, MalformedResponseError
from ..models import ProviderDescriptor, ReputationRecord


class IpInfoProvider(ReputationProvider):
    """Keyed provider using ipinfo.io."""

    descriptor = ProviderDescriptor(
        name='IPInfo.io',
        slug='ipinfo',
        is_free=False,
        monthly_rate_limit=50000,
        minute_rate_limit=0,
        requires_api_key=True,
        signup_url='https://ipinfo.io/signup',
        docs_url='https://ipinfo.io/developers',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        return f"{self.base_url}/{ip}/json", {'token': api_key}

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        error = data.get('error')
        if error:
            if isinstance(error, dict):
                error = error.get('message') or error.get('title')
            raise ProviderRejection(text(error), self.slug())
        if 'ip' not in data:
            raise MalformedResponseError("Missing ip field", self.slug())

        latitude, longitude = self._parse_location(data.get('loc'))
        org = text(data.get('org'))
        as_number = org.split(' ', 1)[0] if org.startswith('AS') else ''

        privacy = data.get('privacy')
        if isinstance(privacy, dict):
            is_vpn = bool(privacy.get('vpn', False))
            is_tor = bool(privacy.get('tor', False))
            is_proxy = bool(privacy.get('proxy', False)) or is_vpn or is_tor
            is_hosting = bool(privacy.get('hosting', False))
        else:
            is_vpn = is_tor = False
            is_proxy = looks_like_proxy(org)
            is_hosting = looks_like_hosting(org)

        return ReputationRecord(
            ip=text(data.get('ip')) or ip,
            provider=self.slug(),
            country=text(data.get('country_name')) or text(data.get('country')),
            country_code=text(data.get('country')),
            region=text(data.get('region')),
            city=text(data.get('city')),
            latitude=latitude,
            longitude=longitude,
            timezone=text(data.get('timezone')),
            isp=org,
            organization=org,
            as_number=as_number,
            is_proxy=is_proxy,
            is_hosting=is_hosting,
            is_vpn=is_vpn,
            is_tor=is_tor,
        )

    def _parse_location(self, loc: Any):
        """Split ipinfo's "lat,lon" string."""
        parts = text(loc).split(',')
        if len(parts) != 2:
            return None, None
        return to_float(parts[0].strip()), to_float(parts[1].strip())
