"""
Unit tests for the access decision engine.
"""

from unittest.mock import MagicMock

import pytest

from accessguard.access import (
    AccessDecisionEngine, render_block_message, DEFAULT_TITLE, DEFAULT_MESSAGE,
    REASON_ADMIN, REASON_DISABLED, REASON_NO_IP, REASON_PRIVATE_IP, REASON_VERIFIED_BOT,
    REASON_NOT_SELECTED, REASON_EXCLUDED, REASON_LOOKUP_FAILED, REASON_VPN_PROXY,
    REASON_CLEAN, REASON_ERROR,
)
from accessguard.models import (
    AccessPolicy, BlockingScope, ProviderConfiguration, ReputationRecord, RequestContext,
)

PUBLIC_IP = '203.0.113.7'
VPN_RECORD = ReputationRecord(ip=PUBLIC_IP, provider='ip-api', is_proxy=True)
CLEAN_RECORD = ReputationRecord(ip=PUBLIC_IP, provider='ip-api')


def request(ip=PUBLIC_IP, user_agent='Mozilla/5.0', **kwargs):
    environ = {'HTTP_USER_AGENT': user_agent}
    if ip is not None:
        environ['REMOTE_ADDR'] = ip
    return RequestContext(environ=environ, **kwargs)


class TestAccessDecisionEngine:
    """Rule order of check_access."""

    def setup_method(self):
        self.registry = MagicMock()
        self.registry.query.return_value = VPN_RECORD
        self.registry.is_vpn_proxy_record.side_effect = lambda record: record.is_proxy
        self.bot_verifier = MagicMock()
        self.bot_verifier.is_verified_bot.return_value = False
        self.policy = AccessPolicy(enabled=True)
        self.provider_config = ProviderConfiguration()
        self.engine = AccessDecisionEngine(
            registry=self.registry,
            bot_verifier=self.bot_verifier,
            policy_loader=lambda: self.policy,
            provider_config_loader=lambda: self.provider_config,
        )

    def test_vpn_is_blocked(self):
        decision = self.engine.check_access(request())

        assert decision.blocked
        assert decision.reason == REASON_VPN_PROXY
        assert decision.status_code == 403
        assert decision.ip == PUBLIC_IP
        assert decision.provider == 'ip-api'
        assert decision.title == DEFAULT_TITLE
        assert decision.message.startswith(f"<h1>{DEFAULT_TITLE}</h1><p>")
        self.registry.query.assert_called_once_with(PUBLIC_IP, self.provider_config)

    def test_clean_is_allowed(self):
        self.registry.query.return_value = CLEAN_RECORD

        decision = self.engine.check_access(request())

        assert decision.allowed
        assert decision.reason == REASON_CLEAN
        assert decision.provider == 'ip-api'

    def test_admin_user_allowed(self):
        decision = self.engine.check_access(request(is_admin=True))

        assert decision.allowed
        assert decision.reason == REASON_ADMIN
        self.registry.query.assert_not_called()

    def test_admin_context_allowed(self):
        decision = self.engine.check_access(request(is_admin_context=True))

        assert decision.reason == REASON_ADMIN

    def test_admin_wins_over_everything(self):
        """Admin check runs before the policy is even loaded."""
        self.engine.policy_loader = MagicMock(side_effect=AssertionError("should not load"))

        assert self.engine.check_access(request(is_admin=True)).reason == REASON_ADMIN

    def test_disabled_policy(self):
        self.policy = AccessPolicy(enabled=False)

        decision = self.engine.check_access(request())

        assert decision.allowed
        assert decision.reason == REASON_DISABLED
        self.registry.query.assert_not_called()

    def test_undeterminable_ip(self):
        decision = self.engine.check_access(request(ip=None))

        assert decision.allowed
        assert decision.reason == REASON_NO_IP
        self.registry.query.assert_not_called()

    def test_malformed_ip(self):
        assert self.engine.check_access(request(ip='not-an-ip')).reason == REASON_NO_IP

    def test_private_ip_never_queried(self):
        for ip in ['192.168.1.10', '10.1.2.3', '127.0.0.1', '::1']:
            decision = self.engine.check_access(request(ip=ip))
            assert decision.allowed
            assert decision.reason == REASON_PRIVATE_IP

        self.registry.query.assert_not_called()

    def test_verified_bot(self):
        self.bot_verifier.is_verified_bot.return_value = True

        decision = self.engine.check_access(request(user_agent='Googlebot/2.1'))

        assert decision.allowed
        assert decision.reason == REASON_VERIFIED_BOT
        self.bot_verifier.is_verified_bot.assert_called_once_with('Googlebot/2.1', PUBLIC_IP)
        self.registry.query.assert_not_called()

    def test_selective_scope_not_selected(self):
        self.policy = AccessPolicy(enabled=True, scope=BlockingScope.SELECTIVE, selected_pages=frozenset({42}))

        for resource_id, resource_type in [(7, 'page'), (42, 'post'), (None, None), (42, 'home')]:
            decision = self.engine.check_access(request(resource_id=resource_id, resource_type=resource_type))
            assert decision.allowed
            assert decision.reason == REASON_NOT_SELECTED

        self.registry.query.assert_not_called()

    def test_selective_scope_selected_is_checked(self):
        self.policy = AccessPolicy(enabled=True, scope=BlockingScope.SELECTIVE,
                                   selected_pages=frozenset({42}), selected_posts=frozenset({9}))

        assert self.engine.check_access(request(resource_id=42, resource_type='page')).blocked
        assert self.engine.check_access(request(resource_id=9, resource_type='post')).blocked

    def test_full_site_excluded(self):
        self.policy = AccessPolicy(enabled=True, excluded_posts=frozenset({5}))

        decision = self.engine.check_access(request(resource_id=5, resource_type='post'))

        assert decision.allowed
        assert decision.reason == REASON_EXCLUDED
        self.registry.query.assert_not_called()

    def test_full_site_not_excluded_is_checked(self):
        self.policy = AccessPolicy(enabled=True, excluded_posts=frozenset({5}))

        assert self.engine.check_access(request(resource_id=5, resource_type='page')).blocked
        assert self.engine.check_access(request()).blocked

    def test_lookup_failure_fails_open(self):
        self.registry.query.return_value = None

        decision = self.engine.check_access(request())

        assert decision.allowed
        assert decision.reason == REASON_LOOKUP_FAILED

    def test_unexpected_error_fails_open(self):
        self.registry.query.side_effect = RuntimeError("boom")

        decision = self.engine.check_access(request())

        assert decision.allowed
        assert decision.reason == REASON_ERROR

    def test_policy_loader_error_fails_open(self):
        self.engine.policy_loader = MagicMock(side_effect=KeyError("settings"))

        assert self.engine.check_access(request()).reason == REASON_ERROR

    def test_custom_block_message(self):
        self.policy = AccessPolicy(enabled=True, warning_title='No VPNs', warning_message='Turn it off.')

        decision = self.engine.check_access(request())

        assert decision.title == 'No VPNs'
        assert decision.message == '<h1>No VPNs</h1><p>Turn it off.</p>'

    def test_passthroughs(self):
        self.registry.get_provider_status.return_value = {'ip-api': {}}
        self.registry.validate_api_key.return_value = True

        assert self.engine.get_provider_status() == {'ip-api': {}}
        assert self.engine.validate_api_key('ipinfo', 'ipinfo-token-123') is True
        self.registry.validate_api_key.assert_called_once_with('ipinfo', 'ipinfo-token-123')


class TestBlockMessage:
    """Rendering of the denial page."""

    def test_defaults(self):
        title, message = render_block_message(AccessPolicy())

        assert title == 'Access Denied'
        assert 'VPN or proxy' in message
        assert message == f"<h1>Access Denied</h1><p>{DEFAULT_MESSAGE.replace(chr(39), '&#x27;')}</p>"

    def test_blank_values_use_defaults(self):
        title, _ = render_block_message(AccessPolicy(warning_title='   '))
        assert title == DEFAULT_TITLE

    @pytest.mark.parametrize("payload", [
        "<script>alert(1)</script>",
        "<img src=x onerror=alert(1)>",
        '"><svg onload=alert(1)>',
    ])
    def test_markup_is_escaped(self, payload):
        title, message = render_block_message(AccessPolicy(warning_title=payload, warning_message=payload))

        assert '<script>' not in message
        assert '<img' not in message
        assert '<svg' not in message
        assert '&lt;' in title
        assert message.startswith('<h1>') and message.endswith('</p>')
