"""
Evaluation of recommendations against a live endpoint.
"""

__all__ = []
