"""
QA Auth Tokens

Bearer token lifecycle for browser-driven QA suites.
"""

__version__ = "0.1.0"
