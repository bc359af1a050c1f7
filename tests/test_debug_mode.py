"""
Tests for debug mode functionality.
"""

import unittest
import os
import sys
from io import StringIO
from unittest.mock import patch, MagicMock
from accessguard.config import config
from accessguard.debug import debug_logger, debug_provider_method
from accessguard.models import ProviderDescriptor, ReputationRecord
from accessguard.providers import IpApiPaidProvider
from accessguard.storage import MemoryStore


class TestDebugConfiguration(unittest.TestCase):
    """Test debug configuration functionality."""

    def test_debug_mode_disabled_by_default(self):
        """Test that debug mode is disabled by default."""
        with patch.dict(os.environ, {}, clear=True):
            self.assertFalse(config.is_debug_mode())
            self.assertEqual(config.get_debug_level(), 'off')

    def test_debug_mode_enabled_by_environment(self):
        """Test debug mode enabled by environment variable."""
        test_cases = [
            ('true', True),
            ('1', True),
            ('yes', True),
            ('on', True),
            ('false', False),
            ('0', False),
            ('no', False),
            ('off', False),
        ]

        for value, expected in test_cases:
            with patch.dict(os.environ, {'ACCESSGUARD_DEBUG': value}):
                self.assertEqual(config.is_debug_mode(), expected)

    def test_debug_levels(self):
        """Test different debug levels."""
        with patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true'}):
            os.environ.pop('ACCESSGUARD_DEBUG_LEVEL', None)
            self.assertEqual(config.get_debug_level(), 'basic')

            for level in ['basic', 'detailed', 'verbose']:
                with patch.dict(os.environ, {'ACCESSGUARD_DEBUG_LEVEL': level}):
                    self.assertEqual(config.get_debug_level(), level)

            # Invalid level falls back to basic
            with patch.dict(os.environ, {'ACCESSGUARD_DEBUG_LEVEL': 'invalid'}):
                self.assertEqual(config.get_debug_level(), 'basic')


class TestDebugLogger(unittest.TestCase):
    """Test debug logger functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.original_stderr = sys.stderr
        self.captured_stderr = StringIO()
        sys.stderr = self.captured_stderr

    def tearDown(self):
        """Clean up test fixtures."""
        sys.stderr = self.original_stderr

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_basic_logging(self):
        """Test basic debug logging."""
        debug_logger.log('basic', 'Test message')

        output = self.captured_stderr.getvalue()
        self.assertIn('[DEBUG', output)
        self.assertIn('Test message', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'false'})
    def test_logging_disabled_when_debug_off(self):
        """Test that logging is disabled when debug mode is off."""
        debug_logger.log('basic', 'Test message')

        self.assertEqual(self.captured_stderr.getvalue(), '')

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_log_level_filtering(self):
        """Test that higher level messages are filtered out."""
        debug_logger.log('detailed', 'Detailed message')
        debug_logger.log('verbose', 'Verbose message')

        output = self.captured_stderr.getvalue()
        self.assertNotIn('Detailed message', output)
        self.assertNotIn('Verbose message', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'detailed'})
    def test_detailed_logging_with_data(self):
        """Test detailed logging with data."""
        test_data = {'key1': 'value1', 'key2': {'nested': 'data'}}
        debug_logger.log('detailed', 'Test with data', test_data)

        output = self.captured_stderr.getvalue()
        self.assertIn('Test with data', output)
        self.assertIn('key1: value1', output)
        self.assertIn('key2: 1 items', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_provider_call_hides_api_key(self):
        """Only the IP argument is shown; the API key is never printed."""
        debug_logger.log_provider_call('proxycheck', 'query', ('203.0.113.7', 'super-secret-key-1'))

        output = self.captured_stderr.getvalue()
        self.assertIn('Provider call #', output)
        self.assertIn('proxycheck.query(203.0.113.7, ... (+1 hidden))', output)
        self.assertNotIn('super-secret-key-1', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_provider_result_logging(self):
        """Test provider result logging."""
        record = ReputationRecord(ip='203.0.113.7', provider='ip-api', is_proxy=True)
        debug_logger.log_provider_result('ip-api', 'query', record, 0.5)

        output = self.captured_stderr.getvalue()
        self.assertIn('Provider result: ip-api.query', output)
        self.assertIn('record(provider=ip-api, proxy=True, hosting=False)', output)
        self.assertIn('0.500s', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_provider_error_logging(self):
        """Test provider error logging."""
        error = ValueError("Test error message")
        debug_logger.log_provider_error('ip-api', 'query', error, 0.2)

        output = self.captured_stderr.getvalue()
        self.assertIn('Provider error: ip-api.query', output)
        self.assertIn('ValueError: Test error message', output)
        self.assertIn('0.200s', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'detailed'})
    def test_rotation_logging(self):
        debug_logger.log_rotation('free', ['freeipapi'], {'ip-api': 'soft limit'})

        output = self.captured_stderr.getvalue()
        self.assertIn("Provider rotation (free): ['freeipapi']", output)
        self.assertIn('ip-api: soft limit', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_check_logging(self):
        """Test access check start/complete logging."""
        debug_logger.log_check_start('203.0.113.7')
        debug_logger.log_check_complete('203.0.113.7', 'vpn_proxy', False, 1.5)

        output = self.captured_stderr.getvalue()
        self.assertIn('Starting access check for: 203.0.113.7', output)
        self.assertIn('Completed access check for 203.0.113.7: BLOCK (vpn_proxy), 1.500s total', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_check_logging_without_ip(self):
        debug_logger.log_check_complete('', 'ip_undetermined', True, 0.01)

        self.assertIn('<unknown ip>: ALLOW', self.captured_stderr.getvalue())


class MockProvider:
    """Minimal provider-shaped object for testing the debug decorator."""

    descriptor = ProviderDescriptor(name='Mock', slug='mock', is_free=True)

    @debug_provider_method
    def test_method(self, arg1, arg2=None):
        """Test method for debug decorator."""
        return {'arg1': arg1, 'arg2': arg2}

    @debug_provider_method
    def error_method(self):
        """Test method that raises an error."""
        raise ValueError("Test error")


class TestDebugDecorator(unittest.TestCase):
    """Test debug decorator functionality."""

    def setUp(self):
        """Set up test fixtures."""
        self.original_stderr = sys.stderr
        self.captured_stderr = StringIO()
        sys.stderr = self.captured_stderr
        self.provider = MockProvider()

    def tearDown(self):
        """Clean up test fixtures."""
        sys.stderr = self.original_stderr

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'false'})
    def test_decorator_disabled_when_debug_off(self):
        """Test that decorator does nothing when debug is off."""
        result = self.provider.test_method('value1', arg2='value2')

        self.assertEqual(result, {'arg1': 'value1', 'arg2': 'value2'})
        self.assertEqual(self.captured_stderr.getvalue(), '')

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_decorator_logs_successful_call(self):
        """Test that decorator logs successful method calls."""
        result = self.provider.test_method('value1', arg2='value2')

        self.assertEqual(result, {'arg1': 'value1', 'arg2': 'value2'})
        output = self.captured_stderr.getvalue()
        self.assertIn('Provider call #', output)
        self.assertIn('mock.test_method', output)
        self.assertIn('Provider result: mock.test_method', output)

    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_decorator_logs_errors(self):
        """Test that decorator logs method errors."""
        with self.assertRaises(ValueError):
            self.provider.error_method()

        output = self.captured_stderr.getvalue()
        self.assertIn('mock.error_method', output)
        self.assertIn('Provider error: mock.error_method', output)
        self.assertIn('ValueError: Test error', output)

    @patch('requests.get')
    @patch.dict(os.environ, {'ACCESSGUARD_DEBUG': 'true', 'ACCESSGUARD_DEBUG_LEVEL': 'basic'})
    def test_real_provider_query_traced_without_key(self, mock_get):
        mock_response = MagicMock()
        mock_response.status_code = 200
        mock_response.json.return_value = {'status': 'success', 'country': 'Germany', 'proxy': False}
        mock_get.return_value = mock_response
        provider = IpApiPaidProvider(store=MemoryStore())

        provider.query('203.0.113.7', 'pro-secret-key-123')

        output = self.captured_stderr.getvalue()
        self.assertIn('ip-api-paid.query(203.0.113.7', output)
        self.assertNotIn('pro-secret-key-123', output)


if __name__ == '__main__':
    unittest.main()
