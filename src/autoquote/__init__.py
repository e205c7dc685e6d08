"""
AutoQuote Pricing Package

Prices point-of-sale transactions captured by voice using layered,
priority-ordered pricing rules, with observed-price fallback.
"""

__version__ = "1.0.0"
