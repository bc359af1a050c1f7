"""
IPGeolocation reputation provider.

ipgeolocation.io returns a security block with proxy, VPN, Tor and bot
flags. Hosting (cloud provider) is recorded but does not by itself mark
an IP as VPN/proxy for this provider.
"""

from typing import Dict, Any
from .base import ReputationProvider, Request, to_float, text
from ..errors import ProviderRejection, MalformedResponseError
from ..models import ProviderDescriptor, ReputationRecord


class IpGeolocationProvider(ReputationProvider):
    """Keyed provider with security flags, using ipgeolocation.io."""

    descriptor = ProviderDescriptor(
        name='IPGeolocation.io',
        slug='ipgeolocation',
        is_free=False,
        monthly_rate_limit=30000,
        minute_rate_limit=0,
        requires_api_key=True,
        signup_url='https://ipgeolocation.io/signup.html',
        docs_url='https://ipgeolocation.io/documentation.html',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        return self.base_url, {'apiKey': api_key, 'ip': ip, 'include': 'security'}

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        message = text(data.get('message'))
        if message and 'ip' not in data:
            raise ProviderRejection(message, self.slug())
        if 'ip' not in data:
            raise MalformedResponseError("Missing ip field", self.slug())

        security = data.get('security') if isinstance(data.get('security'), dict) else {}
        time_zone = data.get('time_zone') if isinstance(data.get('time_zone'), dict) else {}
        is_bot = bool(security.get('is_bot', False))

        return ReputationRecord(
            ip=text(data.get('ip')) or ip,
            provider=self.slug(),
            country=text(data.get('country_name')),
            country_code=text(data.get('country_code2')),
            region=text(data.get('state_prov')),
            city=text(data.get('city')),
            latitude=to_float(data.get('latitude')),
            longitude=to_float(data.get('longitude')),
            timezone=text(time_zone.get('name')),
            isp=text(data.get('isp')),
            organization=text(data.get('organization')),
            as_number=text(data.get('asn')),
            is_proxy=bool(security.get('is_proxy', False)) or is_bot,
            is_hosting=bool(security.get('is_cloud_provider', False)),
            is_vpn=bool(security.get('is_vpn', False)),
            is_tor=bool(security.get('is_tor', False)),
        )

    def is_vpn_proxy(self, record: ReputationRecord) -> bool:
        return record.is_proxy or record.is_vpn or record.is_tor
