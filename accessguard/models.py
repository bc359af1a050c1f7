"""
Data model shared by the providers, the registry and the decision engine.

All structures here are plain dataclasses. Configuration structs are frozen
and assembled once per request by the configuration reader.
"""

from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, Any, Optional, Tuple, FrozenSet, Mapping


class ProviderMode(Enum):
    """Provider selection mode."""
    FREE = "free"
    PAID = "paid"

    def __str__(self):
        return self.value


class BlockingScope(Enum):
    """Where VPN blocking applies."""
    FULL_SITE = "full_site"   # Everywhere except excluded resources
    SELECTIVE = "selective"   # Only on selected resources

    def __str__(self):
        return self.value


@dataclass(frozen=True)
class ReputationRecord:
    """Normalized answer of a single provider about a single IP."""
    ip: str
    provider: str
    country: str = ''
    country_code: str = ''
    region: str = ''
    city: str = ''
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    timezone: str = ''
    isp: str = ''
    organization: str = ''
    as_number: str = ''
    is_proxy: bool = False
    is_hosting: bool = False
    is_vpn: bool = False
    is_tor: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for the response cache."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ReputationRecord':
        """Rebuild a record from its cached form, ignoring unknown keys."""
        known = {name: data[name] for name in cls.__dataclass_fields__ if name in data}
        return cls(**known)

    def country_info(self) -> Dict[str, str]:
        return {'code': self.country_code, 'name': self.country}


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static facts about a reputation provider."""
    name: str
    slug: str
    is_free: bool
    monthly_rate_limit: int = 0   # 0 = unlimited
    minute_rate_limit: int = 0    # 0 = no per-minute cap
    requires_api_key: bool = False
    signup_url: Optional[str] = None
    docs_url: Optional[str] = None


@dataclass(frozen=True)
class UsageStats:
    """Usage counters of one provider."""
    monthly_count: int = 0
    success_count: int = 0
    failure_count: int = 0

    @property
    def total_requests(self) -> int:
        return self.success_count + self.failure_count

    @property
    def success_rate(self) -> float:
        """Success percentage rounded to two decimals, 0 without requests."""
        if self.total_requests == 0:
            return 0.0
        return round(self.success_count / self.total_requests * 100, 2)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'monthly_count': self.monthly_count,
            'success_count': self.success_count,
            'failure_count': self.failure_count,
            'success_rate': self.success_rate,
        }


@dataclass(frozen=True)
class ProviderConfiguration:
    """Operator-supplied provider selection settings."""
    mode: ProviderMode = ProviderMode.FREE
    free_providers: Tuple[str, ...] = ('ip-api',)
    paid_provider: str = ''
    api_keys: Mapping[str, str] = field(default_factory=dict)
    soft_limit_ratio: float = 0.9
    severe_limit_ratio: float = 1.5

    def api_key_for(self, slug: str) -> str:
        return (self.api_keys.get(slug) or '').strip()


@dataclass(frozen=True)
class AccessPolicy:
    """Operator-supplied blocking policy."""
    enabled: bool = False
    warning_title: str = ''
    warning_message: str = ''
    scope: BlockingScope = BlockingScope.FULL_SITE
    selected_pages: FrozenSet[int] = frozenset()
    selected_posts: FrozenSet[int] = frozenset()
    excluded_pages: FrozenSet[int] = frozenset()
    excluded_posts: FrozenSet[int] = frozenset()

    def is_selected(self, resource_id: Optional[int], resource_type: Optional[str]) -> bool:
        return _matches(resource_id, resource_type, self.selected_pages, self.selected_posts)

    def is_excluded(self, resource_id: Optional[int], resource_type: Optional[str]) -> bool:
        return _matches(resource_id, resource_type, self.excluded_pages, self.excluded_posts)


def _matches(resource_id, resource_type, pages, posts) -> bool:
    if resource_id is None:
        return False
    if resource_type == 'page':
        return resource_id in pages
    if resource_type == 'post':
        return resource_id in posts
    return False


@dataclass
class RequestContext:
    """What the decision engine needs to know about the current request."""
    environ: Mapping[str, str] = field(default_factory=dict)
    is_admin: bool = False
    is_admin_context: bool = False
    resource_id: Optional[int] = None
    resource_type: Optional[str] = None

    @property
    def user_agent(self) -> str:
        return self.environ.get('HTTP_USER_AGENT', '') or ''


@dataclass(frozen=True)
class Decision:
    """Outcome of an access check."""
    allowed: bool
    reason: str
    message: Optional[str] = None
    title: Optional[str] = None
    status_code: int = 200
    ip: str = ''
    provider: Optional[str] = None

    @property
    def blocked(self) -> bool:
        return not self.allowed
