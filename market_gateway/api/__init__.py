"""
HTTP boundary: decodes requests, calls the gateway, encodes results/errors.
"""

from market_gateway.api.app import create_app

__all__ = ["create_app"]
