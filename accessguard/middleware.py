"""
WSGI middleware that runs the access check in front of an application.

Example:
    from accessguard.middleware import AccessGuardMiddleware
    app = AccessGuardMiddleware(app, is_admin=lambda environ: environ.get('REMOTE_USER') == 'admin')
"""

import logging
from typing import Callable, Optional, Tuple, Mapping, Any

from .access import AccessDecisionEngine
from .models import RequestContext

logger = logging.getLogger(__name__)

# (resource_id, resource_type), e.g. (42, 'page')
Resource = Tuple[Optional[int], Optional[str]]

ADMIN_PATH_PREFIXES = ('/admin',)


def default_is_admin_context(environ: Mapping[str, Any]) -> bool:
    """Treat anything under /admin as the administrative area."""
    path = environ.get('PATH_INFO', '') or ''
    return any(path == prefix or path.startswith(prefix + '/') for prefix in ADMIN_PATH_PREFIXES)


class AccessGuardMiddleware:
    """Block VPN/proxy visitors before they reach the wrapped application."""

    def __init__(self, app: Callable, engine: Optional[AccessDecisionEngine] = None,
                 is_admin: Optional[Callable[[Mapping[str, Any]], bool]] = None,
                 is_admin_context: Optional[Callable[[Mapping[str, Any]], bool]] = None,
                 resource: Optional[Callable[[Mapping[str, Any]], Resource]] = None):
        """
        Wrap a WSGI application.

        Args:
            app: The WSGI application to protect
            engine: Decision engine (built from the environment if omitted)
            is_admin: Predicate telling whether the user is an administrator
            is_admin_context: Predicate telling whether the request targets the admin area
            resource: Accessor returning (resource_id, resource_type) for the request
        """
        self.app = app
        self.engine = engine or AccessDecisionEngine()
        self.is_admin = is_admin or (lambda environ: False)
        self.is_admin_context = is_admin_context or default_is_admin_context
        self.resource = resource or (lambda environ: (None, None))

    def __call__(self, environ, start_response):
        try:
            context = self._context(environ)
        except Exception:
            logger.exception("Could not build request context, allowing request")
            return self.app(environ, start_response)

        decision = self.engine.check_access(context)

        if decision.allowed:
            return self.app(environ, start_response)

        body = self._render(decision.title, decision.message).encode('utf-8')
        start_response('403 Forbidden', [
            ('Content-Type', 'text/html; charset=utf-8'),
            ('Content-Length', str(len(body))),
            ('Cache-Control', 'no-store'),
        ])
        return [body]

    def _context(self, environ) -> RequestContext:
        resource_id, resource_type = self.resource(environ)
        return RequestContext(
            environ=environ,
            is_admin=bool(self.is_admin(environ)),
            is_admin_context=bool(self.is_admin_context(environ)),
            resource_id=resource_id,
            resource_type=resource_type,
        )

    def _render(self, title: Optional[str], message: Optional[str]) -> str:
        # Title and message are already HTML-escaped by the engine
        return (
            "<!DOCTYPE html>\n"
            f"<html><head><meta charset=\"utf-8\"><title>{title or ''}</title></head>"
            f"<body>{message or ''}</body></html>\n"
        )
