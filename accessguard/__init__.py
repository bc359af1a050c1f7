"""
accessguard - VPN/proxy access blocking backed by IP reputation providers.

This package decides, per inbound web request, whether the client IP is a
VPN, proxy or hosting endpoint by querying a rotating set of external
reputation services, and blocks the request when it is. Verified search
engine crawlers and administrators are always let through.
"""

__version__ = "0.1.0"
__author__ = "accessguard"
__license__ = "Apache License 2.0"
