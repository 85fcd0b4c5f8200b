"""
portfolio-sync: mirror exchange balances and open orders from the portfolio API.
"""

__version__ = "0.1.0"
