"""
SPARQL endpoint access: HTTP client and configured endpoint resolution.
"""

__all__ = []
