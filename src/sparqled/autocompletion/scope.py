"""
The Scope: the set of triple patterns relevant for a recommendation.

The position in the input query for the recommendation is indicated by the
character '<', called the "Point Of Focus". For example, the query

    SELECT * {
        ?s1 a <:Person>; < .
        ?s2 ?p ?o
    }

gets recommendations for predicates co-occurring with a resource of type
:Person. Only the patterns connected to the Point Of Focus, directly or not,
are kept for generating the final query; "?s2 ?p ?o" is removed.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from jinja2 import Template
from rdflib import Variable

from sparqled.autocompletion.templates import default_template
from sparqled.autocompletion.terms import (
    POF,
    Term,
    is_focus,
    is_type_predicate,
    path_variable,
    render_term,
    term_key,
    term_name,
)

logger = logging.getLogger(__name__)

DEFAULT_POF = "?POF"


class RecommendationType(enum.Enum):
    """The kind of term being completed at the Point Of Focus."""

    NONE = "none"
    CLASS = "class"
    PREDICATE = "predicate"
    PATH = "path"
    SUBJECT = "subject"
    OBJECT = "object"


@dataclass
class TriplePattern:
    subject: Term
    predicate: Term
    object: Term
    # True if the object is never used as a subject by another pattern
    leaf: bool = False

    @property
    def s(self) -> str:
        return render_term(self.subject)

    @property
    def p(self) -> str:
        return render_term(self.predicate, predicate=True)

    @property
    def o(self) -> str:
        return render_term(self.object)

    def keys(self) -> tuple[str, str, str]:
        return term_key(self.subject), term_key(self.predicate), term_key(self.object)

    def touches(self, reachable: Set[str]) -> bool:
        return any(key in reachable for key in self.keys())

    def __str__(self) -> str:
        return f"{self.s} {self.p} {self.o} ."


@dataclass
class Cursor:
    """The pattern under construction while the parser walks a triples block."""

    subject: Optional[Term] = None
    predicate: Optional[Term] = None
    object: Optional[Term] = None


@dataclass
class Scope:
    """
    Focus graph and parse state for one completion request.

    The parser populates a Scope through the ``set_*``/``add_*`` methods; the
    recommendation query is then produced by :meth:`recommendation_query`.
    A Scope serves a single request and can be reused after :meth:`reset`.
    """

    template: Template = field(default_factory=default_template)
    context: Dict[str, Any] = field(default_factory=dict)
    patterns: List[TriplePattern] = field(default_factory=list)
    current: Cursor = field(default_factory=Cursor)
    prefixes: Dict[str, str] = field(default_factory=dict)
    base: Optional[str] = None
    keyword: Optional[str] = None
    prefix: Optional[str] = None
    path_length: int = 0
    pof: str = DEFAULT_POF

    def reset(self) -> None:
        """Clear everything collected for the previous query; the template is kept."""

        self.patterns = []
        self.current = Cursor()
        self.prefixes = {}
        self.base = None
        self.keyword = None
        self.prefix = None
        self.path_length = 0
        self.pof = DEFAULT_POF

    # -- builder interface used by the parser ---------------------------------

    def set_subject(self, term: Term) -> None:
        self.current.subject = term

    def set_predicate(self, term: Term) -> None:
        self.current.predicate = term

    def set_object(self, term: Term) -> None:
        self.current.object = term

    def add_triple_pattern(self) -> None:
        cur = self.current
        if cur.subject is None or cur.predicate is None or cur.object is None:
            raise ValueError("Cannot add an incomplete triple pattern.")
        self.patterns.append(TriplePattern(cur.subject, cur.predicate, cur.object))

    def set_keyword(self, keyword: str) -> None:
        if keyword:
            self.keyword = keyword

    def set_prefix(self, iri: str) -> None:
        self.prefix = iri

    def set_path_length(self, length: int) -> None:
        self.path_length = int(length)

    def add_prefix(self, label: str, iri: str) -> None:
        self.prefixes[label] = iri

    def set_base(self, iri: str) -> None:
        self.base = iri

    # -- synthesis ------------------------------------------------------------

    def _focus_keys(self) -> Set[str]:
        keys = {term_key(POF)}
        # hop variables only exist once the focus predicate has been expanded
        if self.pof != DEFAULT_POF:
            keys.update(term_key(path_variable(hop)) for hop in range(1, self.path_length + 1))
        return keys

    def trim_to_scope(self) -> None:
        """
        Remove the triple patterns that are not within the connected component
        containing the Point Of Focus.
        """

        reachable = self._focus_keys()

        size = 0
        while size != len(reachable):
            size = len(reachable)
            for tp in self.patterns:
                if tp.touches(reachable):
                    reachable.update(tp.keys())

        self.patterns = [tp for tp in self.patterns if tp.touches(reachable)]

    def add_intermediate_path(self) -> None:
        """Replace the focus predicate with a chain of ``path_length`` hops."""

        if self.path_length == 0:
            return
        for tp in self.patterns:
            if tp.predicate != POF:
                continue
            inter: Term = tp.subject
            stem = term_name(tp.subject) + term_name(tp.object)
            for hop in range(1, self.path_length):
                nxt = Variable(f"{stem}{hop}")
                self.patterns.append(TriplePattern(inter, path_variable(hop), nxt))
                inter = nxt
            tp.subject = inter
            tp.predicate = path_variable(self.path_length)
            self.pof = path_pof(self.path_length)
            break

    def mark_leaves(self) -> None:
        subjects = {term_key(tp.subject) for tp in self.patterns}
        for tp in self.patterns:
            tp.leaf = term_key(tp.object) not in subjects

    def recommendation_type(self) -> RecommendationType:
        """Return the kind of recommendation for the processed query."""

        if self.path_length != 0:
            return RecommendationType.PATH
        for tp in self.patterns:
            if is_focus(tp.predicate):
                return RecommendationType.PREDICATE
            if is_type_predicate(tp.predicate) and is_focus(tp.object):
                return RecommendationType.CLASS
            if is_focus(tp.object):
                return RecommendationType.OBJECT
            if is_focus(tp.subject):
                return RecommendationType.SUBJECT
        return RecommendationType.NONE

    @property
    def pof_subject(self) -> Optional[str]:
        focus = self._focus_keys()
        for tp in self.patterns:
            if tp.touches(focus):
                return tp.s
        return None

    def render(self) -> str:
        """Render the Scope with its template; does not mutate the Scope."""

        values: Dict[str, Any] = dict(self.context)
        values.update(
            tps=self.patterns,
            pof=self.pof,
            path_length=self.path_length,
            hops=[path_variable(hop).n3() for hop in range(1, self.path_length + 1)],
            keyword=self.keyword,
            prefix=self.prefix,
            prefixes=self.prefixes,
            pof_subject=self.pof_subject,
            scope=self,
        )
        return self.template.render(**values)

    def recommendation_query(self) -> str:
        """
        Return the query used for retrieving recommendations about the Point Of
        Focus. The recommended items are bound to the variable ``?POF``.
        """

        self.trim_to_scope()
        self.add_intermediate_path()
        self.mark_leaves()
        query = self.render()
        logger.debug("Recommendation query (%s):\n%s", self.recommendation_type().value, query)
        return query


def path_pof(path_length: int) -> str:
    """
    Return the ?POF projection expression as the concatenation of each
    intermediate property variable.
    """

    hops = []
    for hop in range(1, path_length + 1):
        hops.append(f'"<", {path_variable(hop).n3()}, ">"')
    return "(concat(" + ', " / ", '.join(hops) + ") as ?POF)"


__all__ = [
    "DEFAULT_POF",
    "RecommendationType",
    "TriplePattern",
    "Cursor",
    "Scope",
    "path_pof",
]
