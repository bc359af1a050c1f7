"""
Provider registry and rotation engine.

This module holds every reputation provider, picks the ones to use for a
given configuration and walks them in order until one answers.
"""

import logging
import time
from collections import OrderedDict
from typing import Dict, List, Any, Optional, Iterable

from .debug import debug_logger
from .models import ProviderConfiguration, ProviderMode, ReputationRecord
from .providers import ReputationProvider, default_providers
from .providers.base import TEST_IP
from .storage import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_FREE_PROVIDER = 'ip-api'


class ProviderRegistry:
    """Registry of reputation providers with sequential fallback."""

    def __init__(self, providers: Optional[Iterable[ReputationProvider]] = None,
                 store: Optional[KeyValueStore] = None,
                 default_slug: str = DEFAULT_FREE_PROVIDER):
        """
        Initialize the registry.

        Args:
            providers: Providers to register (all built-ins if omitted)
            store: Shared store for the built-in providers
            default_slug: Provider used when nothing else is eligible
        """
        self.providers: Dict[str, ReputationProvider] = OrderedDict()
        self.default_slug = default_slug
        if providers is None:
            providers = default_providers(store)
        for provider in providers:
            self.register_provider(provider)

    def register_provider(self, provider: ReputationProvider):
        """Register a provider under its slug, replacing any previous one."""
        self.providers[provider.slug()] = provider

    def get_provider(self, slug: str) -> Optional[ReputationProvider]:
        return self.providers.get(slug)

    def all_providers(self) -> List[ReputationProvider]:
        return list(self.providers.values())

    def active_providers(self, config: ProviderConfiguration) -> List[str]:
        """
        Select the providers to try, in order.

        Args:
            config: Provider selection settings

        Returns:
            Ordered list of provider slugs
        """
        if config.mode == ProviderMode.PAID:
            return self._paid_providers(config)
        return self._free_providers(config)

    def _free_providers(self, config: ProviderConfiguration) -> List[str]:
        available: Dict[str, ReputationProvider] = OrderedDict()
        skipped: Dict[str, str] = {}

        # Configured order is the rotation order
        for slug in config.free_providers:
            if slug in available or slug in skipped:
                continue

            provider = self.providers.get(slug)
            if provider is None:
                skipped[slug] = 'not registered'
            elif not provider.is_free():
                skipped[slug] = 'not a free provider'
            elif provider.requires_api_key() and not config.api_key_for(slug):
                skipped[slug] = 'api key missing'
            elif provider.is_minute_rate_limited():
                skipped[slug] = 'minute limit reached'
            elif provider.usage_at_or_above(config.soft_limit_ratio):
                skipped[slug] = 'soft monthly limit reached'
            else:
                available[slug] = provider

        if available:
            selected = list(available)
            debug_logger.log_rotation('free', selected, skipped)
            return selected

        fallback = self._fallback_provider(config)
        if fallback:
            logger.warning(f"All free providers are limited, falling back to {fallback}")
            debug_logger.log_rotation('free-fallback', [fallback], skipped)
            return [fallback]

        logger.warning(f"No usable free provider, using default {self.default_slug}")
        debug_logger.log_rotation('free-default', [self.default_slug], skipped)
        return self._default()

    def _fallback_provider(self, config: ProviderConfiguration) -> Optional[str]:
        """
        Pick the least-used requested provider that is not severely over limit.

        Key and per-minute checks are not applied here.
        """
        requested = [slug for slug in dict.fromkeys(config.free_providers)
                     if slug in self.providers]
        by_usage = sorted(requested, key=lambda slug: self.providers[slug].monthly_usage())

        for slug in by_usage:
            if not self.providers[slug].usage_at_or_above(config.severe_limit_ratio):
                return slug
        return None

    def _paid_providers(self, config: ProviderConfiguration) -> List[str]:
        if config.paid_provider and config.paid_provider in self.providers:
            return [config.paid_provider]

        for slug, provider in self.providers.items():
            if not provider.is_free():
                return [slug]

        logger.warning(f"No paid provider registered, using default {self.default_slug}")
        return self._default()

    def _default(self) -> List[str]:
        return [self.default_slug] if self.default_slug in self.providers else []

    def query(self, ip: str, config: ProviderConfiguration) -> Optional[ReputationRecord]:
        """
        Ask providers about an IP, first success wins.

        Args:
            ip: Public IP address to check
            config: Provider selection settings

        Returns:
            The first provider record, or None if every provider failed
        """
        for slug in self.active_providers(config):
            provider = self.providers[slug]
            api_key = config.api_key_for(slug)

            if provider.requires_api_key() and not api_key:
                continue
            if provider.is_minute_rate_limited():
                continue

            record = provider.query(ip, api_key)
            if record is not None:
                return record

        logger.warning(f"No reputation provider answered for {ip}")
        return None

    def is_vpn_proxy_record(self, record: ReputationRecord) -> bool:
        """Judge a record with the provider that produced it."""
        provider = self.providers.get(record.provider)
        if provider is None:
            logger.warning(f"Record from unregistered provider {record.provider!r}")
            return False
        return provider.is_vpn_proxy(record)

    def is_vpn_proxy(self, ip: str, config: ProviderConfiguration) -> bool:
        """
        Query and judge an IP in one step.

        Returns:
            True if detected as VPN/proxy, False if clean or unknown
        """
        record = self.query(ip, config)
        if record is None:
            return False
        return self.is_vpn_proxy_record(record)

    def country_info(self, ip: str, config: ProviderConfiguration) -> Dict[str, str]:
        """Country code and name for an IP, empty when unknown."""
        record = self.query(ip, config)
        if record is None:
            return {'code': '', 'name': ''}
        return record.country_info()

    def validate_api_key(self, slug: str, api_key: str) -> bool:
        """
        Validate an API key for a provider.

        Returns:
            False for unknown providers, otherwise the provider's verdict
        """
        provider = self.get_provider(slug)
        if provider is None:
            return False
        return provider.validate_api_key(api_key)

    def get_provider_status(self) -> Dict[str, Dict[str, Any]]:
        """Status of every registered provider, keyed by slug."""
        return {slug: provider.status() for slug, provider in self.providers.items()}

    def usage_statistics(self) -> Dict[str, Dict[str, Any]]:
        """Usage counters of every registered provider, keyed by slug."""
        return {slug: provider.usage_stats().to_dict() for slug, provider in self.providers.items()}

    def test_providers(self, config: ProviderConfiguration, test_ip: str = TEST_IP) -> Dict[str, Dict[str, Any]]:
        """
        Run a live lookup against every active provider.

        Args:
            config: Provider selection settings
            test_ip: Address to look up

        Returns:
            Per-provider success flag, response time in ms and error
        """
        results = {}

        for slug in self.active_providers(config):
            provider = self.providers[slug]
            start_time = time.time()
            record = provider.query(test_ip, config.api_key_for(slug))
            response_time = round((time.time() - start_time) * 1000, 2)

            results[slug] = {
                'success': record is not None,
                'response_time': response_time,
                'error': None if record is not None else 'Failed to get IP info',
            }

        return results
