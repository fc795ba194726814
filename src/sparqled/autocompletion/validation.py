"""SPARQL syntax validation of synthesized queries using rdflib."""

from __future__ import annotations

from pyparsing import ParseException
from rdflib.plugins.sparql import prepareQuery

from sparqled.errors import ParseError


def validate_query(sparql: str) -> None:
    """
    Check that a synthesized recommendation query is valid SPARQL.

    Raises:
        ParseError: if rdflib's parser rejects the query.
    """

    try:
        prepareQuery(sparql)
    except ParseException as exc:
        raise ParseError(f"Synthesized query is not valid SPARQL: {exc.msg}", exc.loc, exc.lineno, exc.col) from exc
    except Exception as exc:
        # rdflib reports unresolved prefixes and algebra errors with plain exceptions
        raise ParseError(f"Synthesized query is not valid SPARQL: {exc}") from exc


__all__ = ["validate_query"]
