"""
Client IP resolution.

Picks the best-guess client address out of the proxy headers of a request,
in a fixed order of precedence.
"""

import logging
from typing import Mapping, Optional, Sequence

from .errors import IndeterminateIpError
from .validator import InputValidator

logger = logging.getLogger(__name__)

# Highest precedence first
DEFAULT_HEADERS = (
    'HTTP_CLIENT_IP',
    'HTTP_X_FORWARDED_FOR',
    'HTTP_X_FORWARDED',
    'HTTP_X_CLUSTER_CLIENT_IP',
    'HTTP_FORWARDED_FOR',
    'HTTP_FORWARDED',
    'REMOTE_ADDR',
)


class ClientIpResolver:
    """Resolve the client IP of a request from WSGI-style environ keys."""

    def __init__(self, headers: Optional[Sequence[str]] = None,
                 validator: Optional[InputValidator] = None):
        self.headers = tuple(headers or DEFAULT_HEADERS)
        self.validator = validator or InputValidator()

    def resolve(self, environ: Mapping[str, str]) -> str:
        """
        Return the client IP, or an empty string if none validates.

        Args:
            environ: Request environ (header names in CGI form)

        Returns:
            Normalized IP address string, or '' when undeterminable
        """
        for header in self.headers:
            raw = environ.get(header)
            if not raw:
                continue

            candidate = self._extract_candidate(str(raw))
            if not candidate:
                continue

            if self.validator.is_valid_ip(candidate):
                return self.validator.normalize_ip(candidate)

            logger.debug(f"Ignoring malformed IP in {header}")

        return ''

    def require(self, environ: Mapping[str, str]) -> str:
        """
        Like resolve(), but raise when no IP can be determined.

        Raises:
            IndeterminateIpError: If no header yields a valid IP
        """
        ip = self.resolve(environ)
        if not ip:
            raise IndeterminateIpError("No valid client IP in request headers")
        return ip

    def is_private(self, ip: str) -> bool:
        return self.validator.is_private_ip(ip)

    def _extract_candidate(self, value: str) -> str:
        """First entry of a comma-separated chain, stripped of decoration."""
        first = value.split(',')[0].strip()

        # RFC 7239 Forwarded: for=192.0.2.43;proto=https
        for part in first.split(';'):
            part = part.strip()
            if part.lower().startswith('for='):
                first = part[4:]
                break

        first = first.strip().strip('"')

        # [2001:db8::1]:4711 and [2001:db8::1]
        if first.startswith('['):
            end = first.find(']')
            if end != -1:
                return first[1:end]

        # 192.0.2.43:8080
        if first.count(':') == 1 and '.' in first:
            first = first.split(':')[0]

        return first
