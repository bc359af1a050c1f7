"""
ProxyCheck reputation provider.

proxycheck.io answers with a per-IP entry carrying explicit detection
flags (proxy, VPN, Tor, hosting, compromised, scraper, anonymous).
"""

from typing import Dict, Any
from .base import ReputationProvider, Request, to_float, text
from ..errors import ProviderRejection, MalformedResponseError
from ..models import ProviderDescriptor, ReputationRecord

# Any of these marks the IP as a proxy
PROXY_DETECTIONS = ('proxy', 'vpn', 'compromised', 'scraper', 'tor', 'hosting', 'anonymous')


class ProxyCheckProvider(ReputationProvider):
    """Keyed provider with security detections, using proxycheck.io."""

    descriptor = ProviderDescriptor(
        name='ProxyCheck.io',
        slug='proxycheck',
        is_free=False,
        monthly_rate_limit=30000,
        minute_rate_limit=0,
        requires_api_key=True,
        signup_url='https://proxycheck.io/',
        docs_url='https://proxycheck.io/api/',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        params = {'key': api_key, 'asn': 1, 'risk': 1, 'vpn': 1, 'tag': 'accessguard'}
        return f"{self.base_url}/{ip}", params

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        """
        Parse a proxycheck.io payload.

        The payload is keyed by the queried IP; a top-level status other
        than "ok" or "warning" is an explicit refusal.
        """
        status = text(data.get('status')).lower()
        if status and status not in ('ok', 'warning'):
            raise ProviderRejection(text(data.get('message')) or f"status {status}", self.slug())

        entry = data.get(ip)
        if not isinstance(entry, dict):
            raise MalformedResponseError("No entry for queried IP", self.slug())

        network = entry.get('network') if isinstance(entry.get('network'), dict) else {}
        location = entry.get('location') if isinstance(entry.get('location'), dict) else {}
        detections = entry.get('detections') if isinstance(entry.get('detections'), dict) else {}

        organization = text(network.get('organisation')) or text(network.get('provider'))

        return ReputationRecord(
            ip=ip,
            provider=self.slug(),
            country=text(location.get('country_name')),
            country_code=text(location.get('country_code')),
            region=text(location.get('region_name')),
            city=text(location.get('city_name')),
            latitude=to_float(location.get('latitude')),
            longitude=to_float(location.get('longitude')),
            timezone=text(location.get('timezone')),
            isp=organization,
            organization=organization,
            as_number=text(network.get('asn')),
            is_proxy=any(detections.get(flag) is True for flag in PROXY_DETECTIONS),
            is_hosting=detections.get('hosting') is True,
            is_vpn=detections.get('vpn') is True,
            is_tor=detections.get('tor') is True,
        )

    def is_vpn_proxy(self, record: ReputationRecord) -> bool:
        return record.is_proxy or record.is_vpn or record.is_tor or record.is_hosting
