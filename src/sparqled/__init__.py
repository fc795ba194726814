"""
Point-Of-Focus autocompletion for SPARQL.

This package parses a partially typed SELECT query containing a focus marker,
extracts the triple patterns connected to it, and synthesizes a query whose
results are completion candidates. It also contains the SPARQL endpoint client,
configuration loading, and the popularity evaluation used to rank candidates.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
