"""
Security utilities for accessguard.

This module provides output sanitization for the block page and redaction
of API keys from provider error messages before they reach the logs.
"""

import re
import html
import logging

logger = logging.getLogger(__name__)


class SecurityValidator:
    """Security validation utilities."""

    def __init__(self):
        """Initialize security validator."""
        self._secret_patterns = [
            # Keys passed in provider query strings
            re.compile(r'([?&](?:key|apiKey|api_key|token)=)[^&\s\'"]+', re.IGNORECASE),
            re.compile(r'[Aa]pi[_\s-]*[Kk]ey[:\s=]+[\w\-]{8,}'),
            re.compile(r'[Tt]oken[:\s=]+[\w\-]{8,}'),
            re.compile(r'[Aa]uthorization[:\s=]+[\w\-]{8,}'),
            re.compile(r'Bearer\s+[\w\-]{8,}'),
        ]

    def sanitize_output_text(self, text: str, max_length: int = 1000) -> str:
        """
        Sanitize text for safe output (prevent injection attacks).

        Args:
            text: Text to sanitize
            max_length: Maximum allowed length

        Returns:
            Sanitized text
        """
        if not text:
            return ""

        text = str(text)[:max_length]

        # HTML escape so operator-supplied text cannot inject markup
        text = html.escape(text, quote=True)

        # Keep only printable characters and common whitespace
        sanitized = ""
        for char in text:
            if char.isprintable() or char in {' ', '\t', '\n'}:
                sanitized += char
            else:
                sanitized += f"\\x{ord(char):02x}"

        return sanitized

    def redact_secrets(self, text: str) -> str:
        """
        Remove API keys and tokens from a string.

        Args:
            text: Text that may contain secrets

        Returns:
            Text with secrets replaced by [REDACTED]
        """
        redacted = str(text)
        for pattern in self._secret_patterns:
            if pattern.groups:
                redacted = pattern.sub(r'\1[REDACTED]', redacted)
            else:
                redacted = pattern.sub('[REDACTED]', redacted)
        return redacted

    def sanitize_error_message(self, error_msg: str, ip_address: str) -> str:
        """
        Sanitize error messages to prevent information disclosure.

        Args:
            error_msg: Original error message
            ip_address: IP address being processed

        Returns:
            Sanitized error message safe for logging
        """
        sanitized = self.redact_secrets(error_msg)

        # Remove internal paths
        sanitized = re.sub(r'/[a-zA-Z0-9/_\-\.]+\.py', '[PATH]', sanitized)

        return self.sanitize_output_text(sanitized, 500)

    def mask_api_key(self, api_key: str) -> str:
        """
        Mask an API key for display, keeping the last four characters.

        Args:
            api_key: The API key

        Returns:
            Masked key, or empty string if no key
        """
        if not api_key:
            return ''
        if len(api_key) <= 4:
            return '*' * len(api_key)
        return '*' * (len(api_key) - 4) + api_key[-4:]

# Global security validator instance
security = SecurityValidator()
