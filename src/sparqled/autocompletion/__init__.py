"""
Recommendation-query synthesis: parser, Scope model and templates.
"""

from sparqled.autocompletion.parser import SparqlParser, parse_query
from sparqled.autocompletion.scope import RecommendationType, Scope, TriplePattern, path_pof
from sparqled.autocompletion.templates import DEFAULT_TEMPLATE, compile_template, load_template
from sparqled.autocompletion.validation import validate_query

__all__ = [
    "SparqlParser",
    "parse_query",
    "RecommendationType",
    "Scope",
    "TriplePattern",
    "path_pof",
    "DEFAULT_TEMPLATE",
    "compile_template",
    "load_template",
    "validate_query",
]
