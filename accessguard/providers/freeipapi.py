"""
FreeipAPI reputation provider.

freeipapi.com is free and keyless with a generous quota (60 requests per
minute), but reports no proxy flags: VPN and hosting use are inferred from
the ISP name.
"""

from typing import Dict, Any
from .base import ReputationProvider, Request, to_float, text
from .heuristics import looks_like_proxy, looks_like_hosting
from ..errors import ProviderRejection, MalformedResponseError
from ..models import ProviderDescriptor, ReputationRecord


class FreeipApiProvider(ReputationProvider):
    """Free, high-limit provider using freeipapi.com."""

    descriptor = ProviderDescriptor(
        name='FreeipAPI.com',
        slug='freeipapi',
        is_free=True,
        # 60/minute over a 30 day month
        monthly_rate_limit=2592000,
        minute_rate_limit=60,
        requires_api_key=False,
        docs_url='https://freeipapi.com/',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        return f"{self.base_url}/{ip}", {}

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        if 'error' in data:
            raise ProviderRejection(text(data.get('error')), self.slug())
        if 'ipAddress' not in data and 'countryCode' not in data:
            raise MalformedResponseError("Missing address fields", self.slug())

        isp = text(data.get('ispName'))
        return ReputationRecord(
            ip=text(data.get('ipAddress')) or ip,
            provider=self.slug(),
            country=text(data.get('countryName')),
            country_code=text(data.get('countryCode')),
            region=text(data.get('regionName')),
            city=text(data.get('cityName')),
            latitude=to_float(data.get('latitude')),
            longitude=to_float(data.get('longitude')),
            timezone=text(data.get('timeZone')),
            isp=isp,
            organization=isp,
            as_number=text(data.get('asn')),
            is_proxy=bool(data.get('isProxy', False)) or looks_like_proxy(isp),
            is_hosting=looks_like_hosting(isp),
        )
