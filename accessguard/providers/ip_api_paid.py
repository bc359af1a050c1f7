"""
IP-API Pro reputation provider.

Paid tier of ip-api.com: same payload as the free service, served over
HTTPS with an API key and no monthly cap.
"""

from dataclasses import replace
from typing import Dict, Any

from .base import Request
from .ip_api import IpApiProvider, FIELDS
from ..models import ProviderDescriptor, ReputationRecord


class IpApiPaidProvider(IpApiProvider):
    """Keyed, unlimited provider using pro.ip-api.com."""

    descriptor = ProviderDescriptor(
        name='IP-API.com (Pro)',
        slug='ip-api-paid',
        is_free=False,
        monthly_rate_limit=0,
        minute_rate_limit=1000,
        requires_api_key=True,
        signup_url='https://signup.ip-api.com/',
        docs_url='https://ip-api.com/docs',
    )

    def build_request(self, ip: str, api_key: str) -> Request:
        return f"{self.base_url}/{ip}", {'key': api_key, 'fields': FIELDS}

    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        record = super().parse_response(data, ip)
        # The pro proxy flag covers VPN exits as well
        return replace(record, is_vpn=record.is_proxy)

    def is_vpn_proxy(self, record: ReputationRecord) -> bool:
        return record.is_proxy or record.is_hosting or record.is_vpn
