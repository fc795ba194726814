"""
Popularity evaluation of recommendations.

A recommendation query is executed and its candidates are ranked by their
co-occurrence count. The top candidates are then counted again over the whole
graph (their "popularity") and the minimum, maximum and mean popularity are
reported together with the time spent answering the recommendation query.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from jinja2 import Template
from rdflib import Literal, URIRef

from sparqled.autocompletion.parser import SparqlParser
from sparqled.autocompletion.scope import Scope
from sparqled.autocompletion.templates import compile_template
from sparqled.errors import DegenerateResultError
from sparqled.sparql.client import HttpSparqlEndpoint, SparqlEndpoint

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 10

# Recommendation query with co-occurrence counts, used when no template is given.
COUNT_TEMPLATE = """\
SELECT {{ pof }} (count(*) as ?count)
{% if graph %}
FROM <{{ graph }}>
{% endif %}
WHERE {
{% for tp in tps %}
  {{ tp.s }} {{ tp.p }} {{ tp.o }} .
{% endfor %}
{% if keyword %}
  FILTER regex(?POF, "{{ keyword | sparql_string }}", "i")
{% endif %}
{% if prefix %}
  FILTER strstarts(str(?POF), "{{ prefix | sparql_string }}")
{% endif %}
}
GROUP BY {{ hops | join(" ") if hops else "?POF" }}
"""

# Counts the occurrences of each bound candidate over the whole graph.
POPULARITY_TEMPLATE = """\
SELECT {{ pof }} (count(*) as ?count)
{% if graph %}
FROM <{{ graph }}>
{% endif %}
WHERE {
{% if hops %}
  VALUES ({{ hops | join(" ") }}) { {% for value in values %}{{ value }} {% endfor %}}
{% else %}
  VALUES ?POF { {% for value in values %}{{ value }} {% endfor %}}
{% endif %}
{% for tp in tps %}
  {{ tp.s }} {{ tp.p }} {{ tp.o }} .
{% endfor %}
}
GROUP BY {{ hops | join(" ") if hops else "?POF" }}
"""

TemplateLike = Union[str, Template, None]


@dataclass
class Candidate:
    """A recommended item with its count."""

    value: str
    count: int
    type: str = "uri"
    lang: Optional[str] = None
    datatype: Optional[str] = None

    @property
    def bindable(self) -> bool:
        """Blank node labels are local to a result set and cannot be bound again."""

        return self.type != "bnode"

    def n3(self) -> str:
        if self.type == "uri":
            return URIRef(self.value).n3()
        if not self.bindable:
            raise ValueError(f"Blank node '{self.value}' cannot be written as a SPARQL term.")
        if self.lang:
            return Literal(self.value, lang=self.lang).n3()
        if self.datatype:
            return Literal(self.value, datatype=URIRef(self.datatype)).n3()
        return Literal(self.value).n3()


@dataclass
class PopularityReport:
    candidates: List[Candidate]
    popularity: List[int]
    min: int
    max: int
    mean: float
    elapsed_ms: float
    queries: List[str] = field(default_factory=list)


def _count(binding: Dict[str, Dict[str, Any]]) -> int:
    try:
        return int(binding["count"]["value"])
    except (KeyError, TypeError, ValueError):
        return 0


def rank_candidates(
    bindings: List[Dict[str, Dict[str, Any]]],
    top_k: int = DEFAULT_TOP_K,
) -> List[Candidate]:
    """
    Sum the counts of each ``?POF`` binding and return the ``top_k`` candidates
    by decreasing count. Equal counts keep the order in which the candidates
    were first seen.
    """

    ranked: Dict[str, Candidate] = {}
    for binding in bindings:
        pof = binding.get("POF")
        if not pof or "value" not in pof:
            continue
        value = str(pof["value"])
        candidate = ranked.get(value)
        if candidate is None:
            candidate = ranked[value] = Candidate(
                value=value,
                count=0,
                type=str(pof.get("type", "uri")),
                lang=pof.get("xml:lang"),
                datatype=pof.get("datatype"),
            )
        candidate.count += _count(binding)
    ordered = sorted(ranked.values(), key=lambda c: c.count, reverse=True)
    return ordered[: min(top_k, len(ordered))]


def _as_template(template: TemplateLike, default: str) -> Template:
    if template is None:
        return compile_template(default)
    if isinstance(template, str):
        return compile_template(template)
    return template


def _recommendation_query(query: str, template: Template, context: Dict[str, Any]) -> Tuple[str, Scope]:
    scope = Scope(template=template, context=context)
    SparqlParser(query, scope).parse()
    return scope.recommendation_query(), scope


def _values_row(candidate: Candidate, path_length: int) -> Optional[str]:
    """
    Write a candidate as a row of a VALUES clause, or return None when it cannot
    be bound again.

    A path candidate is the concatenation ``<p1> / <p2> / ...`` produced by the
    path projection; it is split back into one IRI per hop.
    """

    if not candidate.bindable:
        return None
    if not path_length:
        return candidate.n3()
    hops = candidate.value.split(" / ")
    if len(hops) != path_length or not all(h.startswith("<") and h.endswith(">") for h in hops):
        return None
    return "(" + " ".join(URIRef(h[1:-1]).n3() for h in hops) + ")"


def measure(
    endpoint: Union[str, SparqlEndpoint],
    graph: Optional[str],
    query: str,
    template: TemplateLike = None,
    *,
    popularity_template: TemplateLike = None,
    top_k: int = DEFAULT_TOP_K,
) -> PopularityReport:
    """
    Rank the recommendations for ``query`` and measure their popularity.

    Raises:
        ParseError: if ``query`` cannot be parsed.
        EndpointError: if either query fails on the endpoint.
        DegenerateResultError: if there is no candidate to measure.
    """

    client: SparqlEndpoint = HttpSparqlEndpoint(endpoint) if isinstance(endpoint, str) else endpoint

    # retrieve the recommendations
    rec_query, scope = _recommendation_query(query, _as_template(template, COUNT_TEMPLATE), {"graph": graph})
    result = client.query(rec_query).raise_for_status()
    elapsed_ms = result.elapsed_ms

    top = rank_candidates(result.bindings, top_k)
    logger.info("Results: %s", {c.value: c.count for c in top})
    if not top:
        raise DegenerateResultError("No recommendations")

    values = []
    for candidate in top:
        row = _values_row(candidate, scope.path_length)
        if row is None:
            logger.debug("Skipping candidate %r: it cannot be bound in a VALUES clause", candidate.value)
            continue
        values.append(row)
    if not values:
        raise DegenerateResultError("No recommendation can be bound for the popularity query")

    # get the popularity of each recommended item
    pop_query, _ = _recommendation_query(
        query,
        _as_template(popularity_template, POPULARITY_TEMPLATE),
        {"graph": graph, "values": values},
    )
    popularity = [_count(b) for b in client.query(pop_query).raise_for_status().bindings]
    logger.info("Popularity=%s", popularity)
    if not popularity:
        raise DegenerateResultError("No popularity counts for the recommendations")

    return PopularityReport(
        candidates=top,
        popularity=popularity,
        min=min(popularity),
        max=max(popularity),
        mean=sum(popularity) / len(popularity),
        elapsed_ms=elapsed_ms,
        queries=[rec_query, pop_query],
    )


__all__ = [
    "COUNT_TEMPLATE",
    "POPULARITY_TEMPLATE",
    "Candidate",
    "PopularityReport",
    "rank_candidates",
    "measure",
]
