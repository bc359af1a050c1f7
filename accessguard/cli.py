"""
Command-line entry point for accessguard.

Looks up single addresses, shows provider usage and validates API keys
using the same configuration as the middleware.
"""

import argparse
import os
import sys

from .config import config
from .debug import debug_logger
from .registry import ProviderRegistry
from .security import security
from .storage import create_store
from .validator import validator


def build_registry() -> ProviderRegistry:
    return ProviderRegistry(store=create_store(config.get_redis_url()))


def check_ip(registry: ProviderRegistry, ip: str) -> int:
    """Print the reputation verdict for one address. Returns the exit code."""
    try:
        ip = validator.normalize_ip(ip)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    if validator.is_private_ip(ip):
        print(f"{ip} is a private address and is never looked up")
        return 0

    provider_config = config.provider_configuration()
    record = registry.query(ip, provider_config)
    if record is None:
        print(f"No provider could answer for {ip} (requests would be allowed)")
        return 2

    verdict = registry.is_vpn_proxy_record(record)
    print(f"Reputation for {ip} (provider: {record.provider}):")
    for key, value in record.to_dict().items():
        print(f"  {key}: {value}")
    print(f"  VPN/proxy: {'YES (would block)' if verdict else 'no'}")
    return 0


def show_status(registry: ProviderRegistry) -> int:
    print("Provider status:")
    for slug, status in registry.get_provider_status().items():
        limit = status['rate_limit'] or 'unlimited'
        print(f"  {status['name']} ({slug}): {status['health']}")
        print(f"    free: {status['is_free']}, api key: {'required' if status['requires_api_key'] else 'not required'}")
        print(f"    monthly usage: {status['monthly_usage']}/{limit}, "
              f"success rate: {status['success_rate']}% "
              f"({status['success_count']} ok, {status['failure_count']} failed)")
    return 0


def validate_key(registry: ProviderRegistry, slug: str, api_key: str) -> int:
    if registry.get_provider(slug) is None:
        print(f"Error: unknown provider '{slug}'")
        return 1

    valid = registry.validate_api_key(slug, api_key)
    print(f"API key {security.mask_api_key(api_key)} for {slug}: {'valid' if valid else 'INVALID'}")
    return 0 if valid else 1


def run_provider_tests(registry: ProviderRegistry) -> int:
    results = registry.test_providers(config.provider_configuration())
    if not results:
        print("No active providers to test")
        return 1

    print("Provider test results:")
    for slug, result in results.items():
        outcome = 'OK' if result['success'] else f"FAILED ({result['error']})"
        print(f"  {slug}: {outcome} in {result['response_time']} ms")
    return 0 if all(result['success'] for result in results.values()) else 1


def main(argv=None):
    """Command-line entry point for the VPN/proxy access guard."""
    parser = argparse.ArgumentParser(
        prog='accessguard',
        description='VPN/proxy detection and access blocking tool',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment Variables:
  ACCESSGUARD_PROVIDER_MODE=free         - Provider mode: free or paid
  ACCESSGUARD_FREE_PROVIDERS=ip-api      - Comma-separated free provider rotation
  ACCESSGUARD_PAID_PROVIDER=proxycheck   - Provider used in paid mode
  ACCESSGUARD_*_API_KEY                  - API keys for the paid providers
  ACCESSGUARD_REDIS_URL                  - Share counters and cache through Redis
  ACCESSGUARD_DEBUG=true                 - Enable debug mode with diagnostic output

Examples:
  accessguard check 8.8.8.8                       # Look up an address
  accessguard --status                            # Show provider usage
  accessguard --validate-key proxycheck KEY       # Check an API key
  accessguard --test-providers                    # Query every active provider
"""
    )

    parser.add_argument('command', nargs='?', choices=['check'], help='Command to run')
    parser.add_argument('target', nargs='?', help='IP address to check')
    parser.add_argument('--status', action='store_true',
                        help='Show usage and health of every provider')
    parser.add_argument('--validate-key', nargs=2, metavar=('SLUG', 'KEY'),
                        help='Validate an API key against a provider')
    parser.add_argument('--test-providers', action='store_true',
                        help='Run a live lookup against every active provider')
    parser.add_argument('--debug', action='store_true',
                        help='Enable debug mode with low-level diagnostic output')
    parser.add_argument('--debug-level', choices=['basic', 'detailed', 'verbose'], default='basic',
                        help='Debug verbosity level (default: basic)')

    args = parser.parse_args(argv)

    # Set debug mode if requested
    if args.debug:
        os.environ['ACCESSGUARD_DEBUG'] = 'true'
        os.environ['ACCESSGUARD_DEBUG_LEVEL'] = args.debug_level
        debug_logger.log_config_info()

    registry = build_registry()

    try:
        if args.status:
            sys.exit(show_status(registry))
        if args.validate_key:
            sys.exit(validate_key(registry, *args.validate_key))
        if args.test_providers:
            sys.exit(run_provider_tests(registry))

        if args.command != 'check' or not args.target:
            parser.print_help()
            sys.exit(1)

        sys.exit(check_ip(registry, args.target))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
