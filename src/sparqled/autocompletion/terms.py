from __future__ import annotations

import re
from typing import Union

from rdflib import BNode, Literal, URIRef, Variable
from rdflib.namespace import RDF
from rdflib.paths import Path


# The reserved variable standing for the Point Of Focus.
POF = Variable("POF")

# Object filled in when the focus is a predicate written without an object.
FILL_VAR = Variable("FillVar")

Term = Union[Variable, URIRef, Literal, BNode, Path]

_NON_WORD_RE = re.compile(r"\W+")


def is_focus(term: object) -> bool:
    return isinstance(term, Variable) and term == POF


def is_type_predicate(term: object) -> bool:
    return isinstance(term, URIRef) and term == RDF.type


def path_variable(hop: int) -> Variable:
    return Variable(f"POF{hop}")


def render_term(term: Term, predicate: bool = False) -> str:
    """
    Render a term the way it is written in a SPARQL query.

    ``rdf:type`` in predicate position is written with the ``a`` shortcut.
    """

    if predicate and is_type_predicate(term):
        return "a"
    return term.n3()


def term_key(term: Term) -> str:
    """Hashable identity of a term, used for reachability bookkeeping."""

    if is_type_predicate(term):
        return "a"
    return term.n3()


def term_name(term: Term) -> str:
    """Alphanumeric name of a term, used to derive synthetic variable names."""

    if isinstance(term, Variable):
        return str(term)
    return _NON_WORD_RE.sub("", str(term))


def escape_string(value: str) -> str:
    """Escape a Python string for use inside a double-quoted SPARQL literal."""

    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


__all__ = [
    "POF",
    "FILL_VAR",
    "Term",
    "is_focus",
    "is_type_predicate",
    "path_variable",
    "render_term",
    "term_key",
    "term_name",
    "escape_string",
]
