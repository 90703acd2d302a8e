"""
Provider data sources - one per upstream, sharing the BaseDataSource shape.
"""

from market_gateway.datasource.base import BaseDataSource

__all__ = ["BaseDataSource"]
