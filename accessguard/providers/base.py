"""
Base interface for IP reputation providers.

This module defines the standard interface that every provider must
implement: static descriptor facts, a cached and usage-counted query that
never raises, API key validation and the provider's own VPN/proxy verdict.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Any, Optional, Tuple, Callable
import logging

import requests

from .. import __version__
from ..config import config
from ..debug import debug_provider_method
from ..errors import (
    ProviderError, TransportError, MalformedResponseError,
    ProviderRejection, ConfigurationError,
)
from ..models import ProviderDescriptor, ReputationRecord, UsageStats
from ..security import security
from ..storage import KeyValueStore, MemoryStore, UsageCounter, ResponseCache

logger = logging.getLogger(__name__)

# Known-good address used for key validation
TEST_IP = '8.8.8.8'

Request = Tuple[str, Dict[str, Any]]


class ReputationProvider(ABC):
    """Base class for all reputation providers."""

    descriptor: ProviderDescriptor

    def __init__(self, store: Optional[KeyValueStore] = None, timeout: Optional[float] = None,
                 now: Callable[[], datetime] = datetime.now):
        """
        Initialize the provider.

        Args:
            store: Shared store for cache and counters (in-memory if omitted)
            timeout: Request timeout in seconds (configured default if omitted)
            now: Clock used for monthly/minute counter windows
        """
        self.timeout = timeout if timeout is not None else config.get_request_timeout(10.0)
        self.store = store if store is not None else MemoryStore()
        self.usage = UsageCounter(self.store, self.descriptor.slug, now)
        self.cache = ResponseCache(self.store, self.descriptor.slug)
        self.user_agent = f'accessguard/{__version__}'
        # None for slugs outside the endpoint table; such subclasses set their own
        self.base_url = config.get_endpoint_url(self.descriptor.slug, 'primary')

    def name(self) -> str:
        return self.descriptor.name

    def slug(self) -> str:
        return self.descriptor.slug

    def is_free(self) -> bool:
        return self.descriptor.is_free

    def monthly_rate_limit(self) -> int:
        return self.descriptor.monthly_rate_limit

    def minute_rate_limit(self) -> int:
        return self.descriptor.minute_rate_limit

    def requires_api_key(self) -> bool:
        return self.descriptor.requires_api_key

    @abstractmethod
    def build_request(self, ip: str, api_key: str) -> Request:
        """
        Build the lookup request for an IP.

        Args:
            ip: The IP address to look up
            api_key: The provider API key ('' for keyless providers)

        Returns:
            Tuple of (url, query parameters)
        """
        pass

    @abstractmethod
    def parse_response(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        """
        Turn the provider JSON payload into a normalized record.

        Args:
            data: Decoded JSON payload
            ip: The IP address that was looked up

        Returns:
            ReputationRecord for the IP

        Raises:
            ProviderRejection: If the payload carries an explicit error
            MalformedResponseError: If expected fields are missing
        """
        pass

    @debug_provider_method
    def query(self, ip: str, api_key: str = '') -> Optional[ReputationRecord]:
        """
        Look up an IP, serving from cache when possible.

        Args:
            ip: The IP address to check
            api_key: The provider API key

        Returns:
            ReputationRecord, or None on any failure
        """
        cached = self.cache.get(ip)
        if cached is not None:
            return cached

        if self.requires_api_key() and not api_key:
            # No request is sent, so only the failure tally moves
            self._handle_request_error(
                ConfigurationError("API key not configured", self.slug()), ip)
            self.usage.record_outcome(success=False)
            return None

        try:
            url, params = self.build_request(ip, api_key)
            data = self._fetch(url, params)
            record = self._parse(data, ip)
        except ProviderError as e:
            self._handle_request_error(e, ip)
            self.usage.record(success=False)
            return None

        self.cache.set(ip, record)
        self.usage.record(success=True)
        return record

    def validate_api_key(self, api_key: str) -> bool:
        """
        Check an API key with a lightweight test query.

        Args:
            api_key: API key to validate

        Returns:
            True if the provider accepted the key, False otherwise
        """
        if not self.requires_api_key():
            return True
        if not api_key or not api_key.strip():
            return False

        try:
            url, params = self.build_request(TEST_IP, api_key.strip())
            data = self._fetch(url, params)
            self._parse(data, TEST_IP)
            return True
        except ProviderError as e:
            self._handle_request_error(e, TEST_IP)
            return False

    def is_vpn_proxy(self, record: ReputationRecord) -> bool:
        """
        Provider-specific VPN/proxy verdict for one of its own records.

        Args:
            record: Record produced by this provider

        Returns:
            True if the IP should be treated as VPN/proxy
        """
        return record.is_proxy or record.is_hosting

    def usage_stats(self) -> UsageStats:
        return self.usage.stats()

    def monthly_usage(self) -> int:
        return self.usage.monthly_count()

    def is_minute_rate_limited(self) -> bool:
        """True only when a per-minute cap exists and has been reached."""
        limit = self.minute_rate_limit()
        if limit <= 0:
            return False
        return self.usage.minute_count() >= limit

    def usage_at_or_above(self, ratio: float) -> bool:
        """
        Check monthly usage against a fraction of the monthly limit.

        Args:
            ratio: Fraction of the monthly limit (0.9 = soft limit)

        Returns:
            False for unlimited providers, otherwise usage >= limit * ratio
        """
        limit = self.monthly_rate_limit()
        if limit <= 0:
            return False
        return self.monthly_usage() >= limit * ratio

    def status(self) -> Dict[str, Any]:
        """
        Status summary for dashboards.

        Returns:
            Dictionary of descriptor facts and usage counters
        """
        stats = self.usage_stats()
        if stats.total_requests == 0:
            health = 'idle'
        else:
            health = 'healthy' if stats.success_rate > 80 else 'degraded'

        return {
            'name': self.name(),
            'slug': self.slug(),
            'is_free': self.is_free(),
            'rate_limit': self.monthly_rate_limit(),
            'minute_rate_limit': self.minute_rate_limit(),
            'requires_api_key': self.requires_api_key(),
            'monthly_usage': stats.monthly_count,
            'success_count': stats.success_count,
            'failure_count': stats.failure_count,
            'success_rate': stats.success_rate,
            'health': health,
            'signup_url': self.descriptor.signup_url,
            'docs_url': self.descriptor.docs_url,
        }

    def _fetch(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """
        Issue the HTTP request and decode the JSON body.

        Raises:
            TransportError: On network failure, timeout or 5xx status
            ProviderRejection: On any other non-200 status
            MalformedResponseError: If the body is not a JSON object
        """
        headers = {
            'User-Agent': self.user_agent,
            'Accept': 'application/json',
        }

        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise TransportError(str(e), self.slug()) from e

        if response.status_code != 200:
            message = f"HTTP {response.status_code}"
            if response.status_code >= 500:
                raise TransportError(message, self.slug())
            raise ProviderRejection(message, self.slug())

        try:
            data = response.json()
        except ValueError as e:
            raise MalformedResponseError("Invalid JSON response", self.slug()) from e

        if not isinstance(data, dict):
            raise MalformedResponseError("Expected a JSON object", self.slug())

        return data

    def _parse(self, data: Dict[str, Any], ip: str) -> ReputationRecord:
        try:
            return self.parse_response(data, ip)
        except ProviderError:
            raise
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise MalformedResponseError(f"Unexpected payload: {e}", self.slug()) from e

    def _handle_request_error(self, error: Exception, ip_address: str) -> None:
        """
        Log provider errors consistently, with secrets redacted.

        Args:
            error: The exception that occurred
            ip_address: The IP address being processed
        """
        sanitized_error = security.sanitize_error_message(str(error), ip_address)
        logger.warning(f"{self.name()} lookup failed for {ip_address}: "
                       f"{type(error).__name__}: {sanitized_error}")


def to_float(value: Any) -> Optional[float]:
    """Coerce a coordinate to float, None when absent or unparsable."""
    if value is None or value == '':
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def text(value: Any) -> str:
    """Coerce an optional payload field to a string."""
    return '' if value is None else str(value)
