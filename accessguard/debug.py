"""
Debug utilities for accessguard.

This module provides tracing of provider calls, rotation decisions and
access checks when debug mode is enabled (ACCESSGUARD_DEBUG=true).
"""

import sys
import time
import json
from typing import Any, Dict, Optional, Callable
from functools import wraps
from .config import config


class DebugLogger:
    """Debug logger for low-level diagnostics."""

    def __init__(self):
        """Initialize debug logger."""
        self.start_time = time.time()
        self.provider_call_count = 0

    def log(self, level: str, message: str, data: Optional[Dict[str, Any]] = None):
        """
        Log debug message with optional data.

        Args:
            level: Debug level ('basic', 'detailed', 'verbose')
            message: Debug message
            data: Optional data to include
        """
        if not config.is_debug_mode():
            return

        current_level = config.get_debug_level()

        level_hierarchy = {'basic': 0, 'detailed': 1, 'verbose': 2}
        if level_hierarchy.get(level, 0) > level_hierarchy.get(current_level, 0):
            return

        timestamp = time.time() - self.start_time
        prefix = f"[DEBUG +{timestamp:.3f}s]"

        print(f"{prefix} {message}", file=sys.stderr)

        if data and current_level in ('detailed', 'verbose'):
            self._print_data(data, current_level)

    def _print_data(self, data: Dict[str, Any], level: str):
        """Print debug data with appropriate formatting."""
        try:
            if level == 'verbose':
                formatted = json.dumps(data, indent=2, default=str)
                for line in formatted.split('\n'):
                    print(f"[DEBUG]   {line}", file=sys.stderr)
            else:
                for key, value in data.items():
                    if isinstance(value, dict):
                        print(f"[DEBUG]   {key}: {len(value)} items", file=sys.stderr)
                    elif isinstance(value, (list, tuple)):
                        print(f"[DEBUG]   {key}: [{len(value)} items]", file=sys.stderr)
                    elif isinstance(value, str) and len(value) > 100:
                        print(f"[DEBUG]   {key}: '{value[:97]}...'", file=sys.stderr)
                    else:
                        print(f"[DEBUG]   {key}: {value}", file=sys.stderr)
        except (TypeError, ValueError):
            print("[DEBUG]   <data formatting error>", file=sys.stderr)

    def log_provider_call(self, provider_slug: str, method: str, args: tuple = ()):
        """Log provider method call. API keys are never shown."""
        self.provider_call_count += 1
        shown = args[:1]
        args_str = ", ".join(str(arg) for arg in shown)
        if len(args) > 1:
            args_str += f", ... (+{len(args) - 1} hidden)"

        self.log('basic', f"Provider call #{self.provider_call_count}: {provider_slug}.{method}({args_str})")

    def log_provider_result(self, provider_slug: str, method: str, result: Any, execution_time: float):
        """Log provider method result."""
        result_summary = self._summarize_result(result)

        self.log('basic', f"Provider result: {provider_slug}.{method} -> {result_summary} ({execution_time:.3f}s)")

        if config.get_debug_level() in ('detailed', 'verbose') and hasattr(result, 'to_dict'):
            self.log('detailed', f"Full result data for {provider_slug}.{method}:", result.to_dict())

    def log_provider_error(self, provider_slug: str, method: str, error: Exception, execution_time: float):
        """Log provider method error."""
        error_type = type(error).__name__
        error_msg = str(error)[:100]

        self.log('basic', f"Provider error: {provider_slug}.{method} -> {error_type}: {error_msg} ({execution_time:.3f}s)")

    def log_rotation(self, mode: str, selected: list, skipped: Dict[str, str]):
        """Log which providers the rotation selected and why others were skipped."""
        self.log('basic', f"Provider rotation ({mode}): {selected or 'none'}")
        if skipped:
            self.log('detailed', "Skipped providers:", skipped)

    def _summarize_result(self, result: Any) -> str:
        """Create a summary of the result for logging."""
        if result is None:
            return "None"
        elif isinstance(result, bool):
            return str(result)
        elif hasattr(result, 'provider') and hasattr(result, 'is_proxy'):
            return f"record(provider={result.provider}, proxy={result.is_proxy}, hosting={result.is_hosting})"
        elif isinstance(result, dict):
            return f"dict({len(result)} keys)"
        else:
            return f"{type(result).__name__}({result})"

    def log_check_start(self, ip: str):
        """Log start of an access check."""
        self.log('basic', f"Starting access check for: {ip or '<unknown ip>'}")

    def log_check_complete(self, ip: str, reason: str, allowed: bool, total_time: float):
        """Log completion of an access check."""
        verdict = 'ALLOW' if allowed else 'BLOCK'
        self.log('basic', f"Completed access check for {ip or '<unknown ip>'}: {verdict} ({reason}), {total_time:.3f}s total")

    def log_config_info(self):
        """Log current configuration in debug mode."""
        if not config.is_debug_mode():
            return

        debug_info = {
            'debug_level': config.get_debug_level(),
            'request_timeout': config.get_request_timeout(),
            'redis_configured': config.get_redis_url() is not None,
        }

        self.log('detailed', "Current configuration:", debug_info)


def debug_provider_method(func: Callable) -> Callable:
    """
    Decorator to add debug logging to provider methods.

    This decorator logs provider method calls, results, and errors
    when debug mode is enabled.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        if not config.is_debug_mode():
            return func(self, *args, **kwargs)

        provider_slug = getattr(self, 'descriptor', None)
        provider_slug = provider_slug.slug if provider_slug else self.__class__.__name__
        method_name = func.__name__

        debug_logger.log_provider_call(provider_slug, method_name, args)

        start_time = time.time()
        try:
            result = func(self, *args, **kwargs)
            execution_time = time.time() - start_time
            debug_logger.log_provider_result(provider_slug, method_name, result, execution_time)
            return result
        except Exception as e:
            execution_time = time.time() - start_time
            debug_logger.log_provider_error(provider_slug, method_name, e, execution_time)
            raise

    return wrapper


# Global debug logger instance
debug_logger = DebugLogger()
