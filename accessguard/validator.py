"""
Input validation utilities.

This module provides validation and classification of IPv4 and IPv6
addresses taken from request headers before they are used anywhere else.
"""

import ipaddress
from typing import Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]


class InputValidator:
    """Validator for IP addresses."""

    def __init__(self):
        """Initialize the validator with the non-public address ranges."""
        # Ranges treated as trusted/local: never checked against providers
        self._private_networks = [
            ipaddress.ip_network('10.0.0.0/8'),
            ipaddress.ip_network('172.16.0.0/12'),
            ipaddress.ip_network('192.168.0.0/16'),
            ipaddress.ip_network('127.0.0.0/8'),
            ipaddress.ip_network('0.0.0.0/8'),          # "This" network
            ipaddress.ip_network('169.254.0.0/16'),     # Link-local
            ipaddress.ip_network('224.0.0.0/4'),        # Multicast
            ipaddress.ip_network('240.0.0.0/4'),        # Reserved
            ipaddress.ip_network('::/128'),             # IPv6 unspecified
            ipaddress.ip_network('::1/128'),            # IPv6 loopback
            ipaddress.ip_network('fc00::/7'),           # IPv6 unique local
            ipaddress.ip_network('fe80::/10'),          # IPv6 link-local
            ipaddress.ip_network('ff00::/8'),           # IPv6 multicast
        ]

    def parse_ip(self, ip_string: str) -> Optional[IPAddress]:
        """
        Parse an IP address, returning None when the string is not one.

        Args:
            ip_string: String representation of an IP address

        Returns:
            ipaddress object or None
        """
        if not ip_string:
            return None
        try:
            return ipaddress.ip_address(str(ip_string).strip())
        except ValueError:
            return None

    def is_valid_ip(self, ip_string: str) -> bool:
        """
        Validate if a string represents a valid IP address.

        Args:
            ip_string: String representation of an IP address

        Returns:
            True if valid IPv4 or IPv6 address, False otherwise
        """
        return self.parse_ip(ip_string) is not None

    def normalize_ip(self, ip_string: str) -> str:
        """
        Normalize IP address to standard format.

        Args:
            ip_string: String representation of an IP address

        Returns:
            Normalized IP address string

        Raises:
            ValueError: If IP address is invalid
        """
        ip_obj = self.parse_ip(ip_string)
        if ip_obj is None:
            raise ValueError(f"Invalid IP address: {ip_string}")
        return str(ip_obj)

    def is_private_ip(self, ip_string: str) -> bool:
        """
        Check if IP address is private, loopback, link-local or reserved.

        Invalid input is reported as private so it is never sent to a
        reputation provider.

        Args:
            ip_string: String representation of an IP address

        Returns:
            True if the address is not a public address, False otherwise
        """
        ip_obj = self.parse_ip(ip_string)
        if ip_obj is None:
            return True

        if isinstance(ip_obj, ipaddress.IPv6Address) and ip_obj.ipv4_mapped:
            ip_obj = ip_obj.ipv4_mapped

        return any(ip_obj in network for network in self._private_networks
                   if network.version == ip_obj.version)


# Shared validator instance
validator = InputValidator()
