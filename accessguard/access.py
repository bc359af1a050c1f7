"""
Access decision engine.

Combines the admin and crawler exemptions, the blocking policy and the
reputation verdict into an allow/block decision for one request. Every
failure path ends in ALLOW.
"""

import logging
import time
from typing import Callable, Optional

from .bot_verifier import SearchBotVerifier
from .config import config as default_config
from .debug import debug_logger
from .errors import IndeterminateIpError
from .ip_resolver import ClientIpResolver
from .models import (
    AccessPolicy, BlockingScope, Decision, ProviderConfiguration, RequestContext,
)
from .registry import ProviderRegistry
from .security import security
from .storage import create_store

logger = logging.getLogger(__name__)

DEFAULT_TITLE = 'Access Denied'
DEFAULT_MESSAGE = (
    "We've detected that you're using a VPN or proxy. For security reasons, "
    "access to this website is not allowed through VPNs or proxies. "
    "Please disable your VPN or proxy and try again."
)

# Decision reasons
REASON_ADMIN = 'admin'
REASON_DISABLED = 'disabled'
REASON_NO_IP = 'ip_undetermined'
REASON_PRIVATE_IP = 'private_ip'
REASON_VERIFIED_BOT = 'verified_bot'
REASON_NOT_SELECTED = 'not_selected'
REASON_EXCLUDED = 'excluded'
REASON_LOOKUP_FAILED = 'lookup_failed'
REASON_VPN_PROXY = 'vpn_proxy'
REASON_CLEAN = 'clean'
REASON_ERROR = 'error'


class AccessDecisionEngine:
    """Decide whether a request may proceed."""

    def __init__(self, registry: Optional[ProviderRegistry] = None,
                 resolver: Optional[ClientIpResolver] = None,
                 bot_verifier: Optional[SearchBotVerifier] = None,
                 policy_loader: Optional[Callable[[], AccessPolicy]] = None,
                 provider_config_loader: Optional[Callable[[], ProviderConfiguration]] = None):
        """
        Initialize the engine.

        Args:
            registry: Provider registry (built-in providers on the configured store if omitted)
            resolver: Client IP resolver
            bot_verifier: Search engine crawler verifier
            policy_loader: Returns the AccessPolicy for the current request
            provider_config_loader: Returns the ProviderConfiguration
        """
        self.registry = registry or ProviderRegistry(store=create_store(default_config.get_redis_url()))
        self.resolver = resolver or ClientIpResolver()
        self.bot_verifier = bot_verifier or SearchBotVerifier()
        self.policy_loader = policy_loader or default_config.access_policy
        self.provider_config_loader = provider_config_loader or default_config.provider_configuration

    def check_access(self, context: RequestContext) -> Decision:
        """
        Decide on a request.

        Args:
            context: The current request

        Returns:
            Decision; only a VPN/proxy verdict produces a block
        """
        start_time = time.time()
        try:
            decision = self._decide(context)
        except Exception:
            logger.exception("Access check failed, allowing request")
            decision = Decision(allowed=True, reason=REASON_ERROR)

        debug_logger.log_check_complete(decision.ip, decision.reason, decision.allowed,
                                        time.time() - start_time)
        return decision

    def get_provider_status(self):
        """Per-provider status for the admin dashboard."""
        return self.registry.get_provider_status()

    def validate_api_key(self, slug: str, api_key: str) -> bool:
        return self.registry.validate_api_key(slug, api_key)

    def _decide(self, context: RequestContext) -> Decision:
        if context.is_admin or context.is_admin_context:
            return _allow(REASON_ADMIN)

        policy = self.policy_loader()
        if not policy.enabled:
            return _allow(REASON_DISABLED)

        try:
            ip = self.resolver.require(context.environ)
        except IndeterminateIpError:
            logger.info("Client IP undeterminable, allowing request")
            return _allow(REASON_NO_IP)

        debug_logger.log_check_start(ip)

        if self.resolver.is_private(ip):
            return _allow(REASON_PRIVATE_IP, ip)

        if self.bot_verifier.is_verified_bot(context.user_agent, ip):
            return _allow(REASON_VERIFIED_BOT, ip)

        if policy.scope == BlockingScope.SELECTIVE:
            if not policy.is_selected(context.resource_id, context.resource_type):
                return _allow(REASON_NOT_SELECTED, ip)
        elif policy.is_excluded(context.resource_id, context.resource_type):
            return _allow(REASON_EXCLUDED, ip)

        record = self.registry.query(ip, self.provider_config_loader())
        if record is None:
            return _allow(REASON_LOOKUP_FAILED, ip)

        if not self.registry.is_vpn_proxy_record(record):
            return Decision(allowed=True, reason=REASON_CLEAN, ip=ip, provider=record.provider)

        title, message = render_block_message(policy)
        logger.info(f"Blocked VPN/proxy request from {ip} (provider: {record.provider})")
        return Decision(
            allowed=False,
            reason=REASON_VPN_PROXY,
            message=message,
            title=title,
            status_code=403,
            ip=ip,
            provider=record.provider,
        )


def render_block_message(policy: AccessPolicy):
    """
    Build the denial page body.

    Args:
        policy: Policy carrying the optional custom title and message

    Returns:
        Tuple of (escaped title, HTML message)
    """
    title = security.sanitize_output_text(policy.warning_title.strip() or DEFAULT_TITLE, 200)
    body = security.sanitize_output_text(policy.warning_message.strip() or DEFAULT_MESSAGE, 2000)
    return title, f"<h1>{title}</h1><p>{body}</p>"


def _allow(reason: str, ip: str = '') -> Decision:
    return Decision(allowed=True, reason=reason, ip=ip)
