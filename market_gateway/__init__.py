"""
Market Gateway - one REST API over several market-data providers.
"""

__version__ = "0.1.0"
