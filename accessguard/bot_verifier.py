"""
Search engine crawler verification.

A request is a verified crawler if its user agent carries a known crawler
token, or if its IP sits in a Google crawler block and passes a
reverse-then-forward DNS round trip.
"""

import concurrent.futures
import ipaddress
import logging
import socket
from typing import Iterable, Optional, Sequence

from .validator import InputValidator

logger = logging.getLogger(__name__)

ALLOWED_BOT_TOKENS = (
    'googlebot',
    'adsbot-google',
    'mediapartners-google',
    'google-read-aloud',
    'chrome-lighthouse',
    'google favicon',
    'google web preview',
    'google-inspectiontool',
    'bingbot',
    'bingpreview',
    'yandexbot',
    'baiduspider',
    'duckduckbot',
    'yahoo',
    'slurp',
    'facebookexternalhit',
    'twitterbot',
    'linkedinbot',
    'ahrefsbot',
    'semrushbot',
    'mj12bot',
)

GOOGLE_CRAWLER_NETWORKS = (
    '66.249.0.0/16',
    '64.233.0.0/16',
    '72.14.0.0/16',
    '74.125.0.0/16',
    '216.239.0.0/16',
    '209.85.0.0/16',
    '35.0.0.0/8',
    '34.0.0.0/8',
)

GOOGLE_HOST_SUFFIXES = ('.googlebot.com', '.google.com')

# Resolver calls run here so each one can be waited on with a timeout
_dns_executor = concurrent.futures.ThreadPoolExecutor(max_workers=4, thread_name_prefix="accessguard-dns")


class SearchBotVerifier:
    """Verify that a request comes from a legitimate search engine crawler."""

    def __init__(self, bot_tokens: Optional[Iterable[str]] = None,
                 crawler_networks: Optional[Iterable[str]] = None,
                 trusted_suffixes: Sequence[str] = GOOGLE_HOST_SUFFIXES,
                 dns_timeout: float = 2.0):
        self.bot_tokens = tuple(token.lower() for token in (bot_tokens or ALLOWED_BOT_TOKENS))
        self.crawler_networks = [ipaddress.ip_network(net)
                                 for net in (crawler_networks or GOOGLE_CRAWLER_NETWORKS)]
        self.trusted_suffixes = tuple(suffix.lower() for suffix in trusted_suffixes)
        self.dns_timeout = dns_timeout
        self.validator = InputValidator()

    def is_verified_bot(self, user_agent: str, ip: str) -> bool:
        """
        Check whether the request is from a known search engine crawler.

        Args:
            user_agent: User-Agent header of the request
            ip: Resolved client IP (may be empty)

        Returns:
            True if either the user agent or the DNS round trip verifies
        """
        if ip and self.is_crawler_ip(ip) and self.verify_dns_round_trip(ip):
            return True

        return self.matches_bot_token(user_agent)

    def matches_bot_token(self, user_agent: str) -> bool:
        """Case-insensitive substring match against the crawler allow-list."""
        if not user_agent:
            return False
        user_agent = user_agent.lower()
        return any(token in user_agent for token in self.bot_tokens)

    def is_crawler_ip(self, ip: str) -> bool:
        """Check whether the IP falls in a known crawler block."""
        ip_obj = self.validator.parse_ip(ip)
        if ip_obj is None:
            return False
        return any(ip_obj in network for network in self.crawler_networks
                   if network.version == ip_obj.version)

    def verify_dns_round_trip(self, ip: str) -> bool:
        """
        Forward-confirmed reverse DNS check.

        Args:
            ip: IP address claimed to belong to a crawler

        Returns:
            True only if the PTR hostname is under a trusted suffix and
            resolves back to the same IP. DNS failures return False.
        """
        hostname = self._reverse_lookup(ip)
        if not hostname:
            return False

        hostname = hostname.rstrip('.').lower()
        if not hostname.endswith(self.trusted_suffixes):
            logger.info(f"Crawler IP {ip} resolved to untrusted host {hostname}")
            return False

        forward_ips = self._forward_lookup(hostname)
        normalized = self.validator.normalize_ip(ip)
        return normalized in forward_ips

    def _reverse_lookup(self, ip: str) -> Optional[str]:
        try:
            hostname, _, _ = self._bounded(socket.gethostbyaddr, ip)
            return hostname
        except (socket.herror, socket.gaierror, socket.timeout, OSError,
                concurrent.futures.TimeoutError) as e:
            logger.debug(f"Reverse DNS failed for {ip}: {e!r}")
            return None

    def _forward_lookup(self, hostname: str) -> set:
        try:
            _, _, addresses = self._bounded(socket.gethostbyname_ex, hostname)
        except (socket.herror, socket.gaierror, socket.timeout, OSError,
                concurrent.futures.TimeoutError) as e:
            logger.debug(f"Forward DNS failed for {hostname}: {e!r}")
            return set()
        return {self.validator.normalize_ip(address) for address in addresses
                if self.validator.is_valid_ip(address)}

    def _bounded(self, lookup, name: str):
        """
        Run a resolver call on the DNS pool and wait at most dns_timeout.

        The system resolver ignores socket timeouts, so the wait is bounded
        here instead. A lookup that overruns keeps its worker until the
        resolver gives up; its result is discarded.

        Raises:
            concurrent.futures.TimeoutError: If the lookup did not finish in time
        """
        future = _dns_executor.submit(lookup, name)
        try:
            return future.result(timeout=self.dns_timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise
