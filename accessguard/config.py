"""
Secure configuration management for accessguard.

This module reads operator settings from the environment and assembles the
typed ProviderConfiguration and AccessPolicy structs consumed by the core.
API keys are validated and never cached.
"""

import os
import logging
from typing import Optional, Dict, Any, FrozenSet, Tuple

from .models import ProviderConfiguration, AccessPolicy, ProviderMode, BlockingScope

# Set up logging for security events
logger = logging.getLogger(__name__)

ENV_PREFIX = 'ACCESSGUARD_'

TRUE_VALUES = ('1', 'true', 'yes', 'on')


class SecureConfig:
    """Secure configuration manager for sensitive data."""

    def __init__(self):
        """Initialize secure configuration manager."""
        self._config_cache: Dict[str, Any] = {}
        self._sensitive_keys = {
            'api_key', 'token', 'secret', 'redis_url'
        }

    def get_api_key(self, service: str) -> Optional[str]:
        """
        Securely retrieve API key for a provider.

        Args:
            service: Provider slug (e.g., 'proxycheck', 'ip-api-paid')

        Returns:
            API key if available, None otherwise
        """
        env_var = f"{ENV_PREFIX}{self._env_name(service)}_API_KEY"
        api_key = os.getenv(env_var)

        if api_key:
            if self._validate_api_key_format(api_key, service):
                logger.debug(f"API key loaded for provider: {service}")
                return api_key.strip()
            else:
                logger.warning(f"Invalid API key format for provider: {service}")
                return None

        # Try alternative environment variable names
        for alt_name in self._get_alternative_env_names(service):
            api_key = os.getenv(alt_name)
            if api_key and self._validate_api_key_format(api_key, service):
                logger.debug(f"API key loaded for provider: {service} (via {alt_name})")
                return api_key.strip()

        logger.debug(f"No API key found for provider: {service}")
        return None

    def get_api_keys(self, services) -> Dict[str, str]:
        """Collect every configured API key for the given provider slugs."""
        keys = {}
        for service in services:
            api_key = self.get_api_key(service)
            if api_key:
                keys[service] = api_key
        return keys

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value with caching.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        if key in self._config_cache:
            return self._config_cache[key]

        env_key = f"{ENV_PREFIX}{key.upper()}"
        value = os.getenv(env_key, default)

        # Cache non-sensitive values
        if not any(sensitive in key.lower() for sensitive in self._sensitive_keys):
            self._config_cache[key] = value

        return value

    def clear_cache(self) -> None:
        """Forget cached values so the next read sees the environment again."""
        self._config_cache.clear()

    def _env_name(self, service: str) -> str:
        return service.upper().replace('-', '_')

    def _validate_api_key_format(self, api_key: str, service: str) -> bool:
        """
        Validate API key format for security.

        Args:
            api_key: The API key to validate
            service: Provider slug for provider-specific validation

        Returns:
            True if format is valid, False otherwise
        """
        if not api_key or not api_key.strip():
            return False

        api_key = api_key.strip()
        if len(api_key) < 8 or len(api_key) > 128:
            return False

        if any(char in api_key for char in [' ', '\t', '\n', '\r']):
            return False

        # Characters that would break the query string of a provider URL
        if any(char in api_key for char in ['&', '?', '#', '/']):
            return False

        return True

    def _get_alternative_env_names(self, service: str) -> list:
        """
        Get alternative environment variable names for a provider.

        Args:
            service: Provider slug

        Returns:
            List of alternative environment variable names
        """
        alternatives = {
            'proxycheck': ['PROXYCHECK_API_KEY', 'PROXYCHECK_KEY'],
            'ip-api-paid': ['IPAPI_PRO_KEY', 'IP_API_KEY'],
            'ipgeolocation': ['IPGEOLOCATION_API_KEY'],
            'ipinfo': ['IPINFO_TOKEN', 'IPINFO_API_KEY'],
        }

        return alternatives.get(service.lower(), [])

    def get_endpoint_url(self, service: str, endpoint_type: str = 'primary') -> Optional[str]:
        """
        Get endpoint URL for a provider.

        Args:
            service: Provider slug
            endpoint_type: Type of endpoint (primary, backup, etc.)

        Returns:
            Endpoint URL if available, None otherwise
        """
        endpoints = {
            'ip-api': {
                # The free ip-api.com tier only serves plain HTTP
                'primary': 'http://ip-api.com/json',
            },
            'ip-api-paid': {
                'primary': 'https://pro.ip-api.com/json',
            },
            'freeipapi': {
                'primary': 'https://freeipapi.com/api/json',
            },
            'proxycheck': {
                'primary': 'https://proxycheck.io/v3',
            },
            'ipgeolocation': {
                'primary': 'https://api.ipgeolocation.io/ipgeo',
            },
            'ipinfo': {
                'primary': 'https://ipinfo.io',
            },
        }
        plaintext_allowed = {'ip-api'}

        service_endpoints = endpoints.get(service.lower(), {})
        url = service_endpoints.get(endpoint_type)

        if url and not url.startswith('https://') and service.lower() not in plaintext_allowed:
            logger.warning(f"Non-HTTPS endpoint configured for {service}: {url}")
            return None

        return url

    def get_request_timeout(self, default: float = 10.0) -> float:
        """
        Get request timeout with security bounds.

        Args:
            default: Default timeout value

        Returns:
            Bounded timeout value
        """
        try:
            timeout = float(self.get_config_value('request_timeout', default))
            # Enforce bounds: 1-30 seconds
            return max(1.0, min(30.0, timeout))
        except (ValueError, TypeError):
            return default

    def get_ratio(self, key: str, default: float) -> float:
        """Read a positive float ratio, falling back to the default."""
        try:
            value = float(self.get_config_value(key, default))
        except (ValueError, TypeError):
            logger.warning(f"Invalid ratio for {key}, using {default}")
            return default
        return value if value > 0 else default

    def get_flag(self, key: str, default: bool = False) -> bool:
        value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
        if value is None:
            return default
        return value.strip().lower() in TRUE_VALUES

    def get_list(self, key: str, default: Tuple[str, ...] = ()) -> Tuple[str, ...]:
        """Read a comma-separated list, keeping order and dropping blanks."""
        value = os.getenv(f"{ENV_PREFIX}{key.upper()}")
        if value is None:
            return tuple(default)
        return tuple(item.strip() for item in value.split(',') if item.strip())

    def get_id_set(self, key: str) -> FrozenSet[int]:
        """Read a comma-separated list of resource ids."""
        ids = set()
        for item in self.get_list(key):
            try:
                ids.add(int(item))
            except ValueError:
                logger.warning(f"Ignoring non-numeric resource id in {key}: {item!r}")
        return frozenset(ids)

    def get_redis_url(self) -> Optional[str]:
        """Redis URL of the shared counter/cache store, None for in-memory."""
        return os.getenv(f"{ENV_PREFIX}REDIS_URL") or None

    def provider_configuration(self) -> ProviderConfiguration:
        """
        Assemble the provider selection settings.

        Returns:
            ProviderConfiguration built from the environment
        """
        mode_value = os.getenv(f"{ENV_PREFIX}PROVIDER_MODE", 'free').strip().lower()
        try:
            mode = ProviderMode(mode_value)
        except ValueError:
            logger.warning(f"Unknown provider mode {mode_value!r}, using free")
            mode = ProviderMode.FREE

        free_providers = self.get_list('free_providers', ('ip-api',))
        paid_provider = os.getenv(f"{ENV_PREFIX}PAID_PROVIDER", '').strip()

        slugs = list(free_providers)
        if paid_provider:
            slugs.append(paid_provider)
        slugs.extend(['proxycheck', 'ip-api-paid', 'ipgeolocation', 'ipinfo'])

        return ProviderConfiguration(
            mode=mode,
            free_providers=free_providers,
            paid_provider=paid_provider,
            api_keys=self.get_api_keys(dict.fromkeys(slugs)),
            soft_limit_ratio=self.get_ratio('soft_limit_ratio', 0.9),
            severe_limit_ratio=self.get_ratio('severe_limit_ratio', 1.5),
        )

    def access_policy(self) -> AccessPolicy:
        """
        Assemble the blocking policy.

        Returns:
            AccessPolicy built from the environment
        """
        scope_value = os.getenv(f"{ENV_PREFIX}BLOCKING_MODE", 'full_site').strip().lower()
        try:
            scope = BlockingScope(scope_value)
        except ValueError:
            logger.warning(f"Unknown blocking mode {scope_value!r}, using full_site")
            scope = BlockingScope.FULL_SITE

        return AccessPolicy(
            enabled=self.get_flag('enabled'),
            warning_title=os.getenv(f"{ENV_PREFIX}WARNING_TITLE", ''),
            warning_message=os.getenv(f"{ENV_PREFIX}WARNING_MESSAGE", ''),
            scope=scope,
            selected_pages=self.get_id_set('selected_pages'),
            selected_posts=self.get_id_set('selected_posts'),
            excluded_pages=self.get_id_set('excluded_pages'),
            excluded_posts=self.get_id_set('excluded_posts'),
        )

    def is_debug_mode(self) -> bool:
        """
        Check if debug mode is enabled.

        Returns:
            True if debug mode is enabled
        """
        debug_value = os.getenv(f"{ENV_PREFIX}DEBUG", 'false').lower()
        return debug_value in TRUE_VALUES

    def get_debug_level(self) -> str:
        """
        Get debug level for controlling verbosity.

        Returns:
            Debug level: 'off', 'basic', 'detailed', or 'verbose'
        """
        if not self.is_debug_mode():
            return 'off'

        level = os.getenv(f"{ENV_PREFIX}DEBUG_LEVEL", 'basic').lower()
        if level in ('basic', 'detailed', 'verbose'):
            return level
        return 'basic'

# Global configuration instance
config = SecureConfig()
