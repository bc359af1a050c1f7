"""
IP-API reputation provider.

This provider uses the free IP-API service (ip-api.com), which reports
explicit proxy and hosting flags. No API key required; the free tier is
limited to 45 requests per minute.
"""

from typing import Dict, Any
from .base import ReputationProvider, Request, to_float, text
from ..errors import ProviderRejection, MalformedResponseError
from ..models import ProviderDescriptor, ReputationRecord

FIELDS = 'status,message,country,countryCode,region,regionName,city,lat,lon,timezone,isp,org,as,proxy,hosting,query'


class IpApiProvider(ReputationProvider):
    """Free provider using ip-api.com."""

    descriptor = ProviderDescriptor(
        name='IP-API.com',
        slug='ip-api',
        is_free=True,
        monthly_rate_limit=1000,
        minute_rate_limit=45,
        requires_api_key=False,
        docs_url='https://ip-api.com/docs',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        return f"{self.base_url}/{ip}", {'fields': FIELDS}

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        """
        Parse an ip-api.com payload.

        Args:
            data: Raw API response data
            ip: The IP address being analyzed

        Returns:
            Normalized record
        """
        if 'status' not in data:
            raise MalformedResponseError("Missing status field", self.slug())
        if data['status'] != 'success':
            raise ProviderRejection(text(data.get('message')) or 'Lookup failed', self.slug())

        return ReputationRecord(
            ip=text(data.get('query')) or ip,
            provider=self.slug(),
            country=text(data.get('country')),
            country_code=text(data.get('countryCode')),
            region=text(data.get('regionName')),
            city=text(data.get('city')),
            latitude=to_float(data.get('lat')),
            longitude=to_float(data.get('lon')),
            timezone=text(data.get('timezone')),
            isp=text(data.get('isp')),
            organization=text(data.get('org')),
            as_number=text(data.get('as')),
            is_proxy=bool(data.get('proxy', False)),
            is_hosting=bool(data.get('hosting', False)),
        )
