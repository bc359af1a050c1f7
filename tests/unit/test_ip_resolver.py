"""
Unit tests for client IP resolution.
"""

import pytest
from accessguard.errors import IndeterminateIpError
from accessguard.ip_resolver import ClientIpResolver, DEFAULT_HEADERS


class TestClientIpResolver:
    """Test cases for ClientIpResolver."""

    def setup_method(self):
        """Set up test fixtures."""
        self.resolver = ClientIpResolver()

    def test_remote_addr_only(self):
        assert self.resolver.resolve({'REMOTE_ADDR': '203.0.113.7'}) == '203.0.113.7'

    def test_header_precedence(self):
        """Each header wins over every header after it."""
        addresses = ['198.51.100.%d' % (i + 1) for i in range(len(DEFAULT_HEADERS))]

        for index, header in enumerate(DEFAULT_HEADERS):
            environ = {h: addresses[i] for i, h in enumerate(DEFAULT_HEADERS) if i >= index}
            assert self.resolver.resolve(environ) == addresses[index], f"{header} should win"

    def test_client_ip_beats_forwarded_for(self):
        environ = {
            'HTTP_CLIENT_IP': '198.51.100.1',
            'HTTP_X_FORWARDED_FOR': '198.51.100.2',
            'REMOTE_ADDR': '10.0.0.1',
        }
        assert self.resolver.resolve(environ) == '198.51.100.1'

    def test_first_entry_of_forwarded_chain(self):
        environ = {'HTTP_X_FORWARDED_FOR': '203.0.113.7, 10.0.0.1, 10.0.0.2'}
        assert self.resolver.resolve(environ) == '203.0.113.7'

    def test_malformed_header_falls_through(self):
        """A header that does not validate is skipped, not fatal."""
        environ = {
            'HTTP_CLIENT_IP': 'garbage',
            'HTTP_X_FORWARDED_FOR': 'unknown, 1.2.3.4',
            'REMOTE_ADDR': '203.0.113.7',
        }
        assert self.resolver.resolve(environ) == '203.0.113.7'

    def test_rfc7239_forwarded_header(self):
        environ = {'HTTP_FORWARDED': 'for=192.0.2.60;proto=http;by=203.0.113.43'}
        assert self.resolver.resolve(environ) == '192.0.2.60'

    def test_bracketed_ipv6_with_port(self):
        environ = {'HTTP_FORWARDED': 'for="[2001:db8:cafe::17]:4711"'}
        assert self.resolver.resolve(environ) == '2001:db8:cafe::17'

    def test_ipv4_with_port(self):
        environ = {'HTTP_X_FORWARDED_FOR': '203.0.113.7:8080'}
        assert self.resolver.resolve(environ) == '203.0.113.7'

    def test_ipv6_is_normalized(self):
        environ = {'REMOTE_ADDR': '2001:0db8:0000:0000:0000:0000:0000:0001'}
        assert self.resolver.resolve(environ) == '2001:db8::1'

    def test_nothing_valid_returns_empty(self):
        assert self.resolver.resolve({}) == ''
        assert self.resolver.resolve({'REMOTE_ADDR': 'not-an-ip'}) == ''

    def test_require_raises_when_undeterminable(self):
        with pytest.raises(IndeterminateIpError):
            self.resolver.require({'HTTP_X_FORWARDED_FOR': ''})

    def test_require_returns_ip(self):
        assert self.resolver.require({'REMOTE_ADDR': '8.8.8.8'}) == '8.8.8.8'

    def test_is_private(self):
        assert self.resolver.is_private('192.168.1.10')
        assert self.resolver.is_private('127.0.0.1')
        assert self.resolver.is_private('')
        assert not self.resolver.is_private('8.8.8.8')

    def test_custom_header_order(self):
        resolver = ClientIpResolver(headers=['REMOTE_ADDR'])
        environ = {'HTTP_X_FORWARDED_FOR': '198.51.100.1', 'REMOTE_ADDR': '198.51.100.2'}
        assert resolver.resolve(environ) == '198.51.100.2'
