from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

import requests

from sparqled.errors import EndpointError

logger = logging.getLogger(__name__)


@dataclass
class SourceResult:
    rows: List[Dict[str, Any]]
    variables: List[str]
    row_count: int
    elapsed_ms: float
    endpoint_url: str
    status: str
    error: Optional[str] = None
    status_code: Optional[int] = None
    # Raw SPARQL JSON bindings: variable -> {"type": ..., "value": ..., ...}
    bindings: List[Dict[str, Dict[str, Any]]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    def raise_for_status(self) -> "SourceResult":
        """Raise :class:`EndpointError` if the query failed, otherwise return self."""

        if not self.ok:
            raise EndpointError(
                f"SPARQL query against '{self.endpoint_url}' failed: {self.error}",
                endpoint_url=self.endpoint_url,
                status_code=self.status_code,
            )
        return self


def ensure_limit(query: str, max_rows: int) -> str:
    """
    Ensure that a SPARQL SELECT query has a LIMIT clause with the specified max_rows.

    This is a simple, case-insensitive heuristic and does not attempt to fully
    parse SPARQL. If a LIMIT is already present, it is replaced with the specified
    max_rows; otherwise a LIMIT is appended.
    """

    pattern = re.compile(r"\blimit\s+\d+\b", flags=re.IGNORECASE)
    if pattern.search(query):
        return pattern.sub(f"LIMIT {int(max_rows)}", query)

    stripped = query.rstrip().rstrip(";")
    return f"{stripped}\nLIMIT {int(max_rows)}"


def _parse_json(payload: Dict[str, Any]) -> tuple[List[str], List[Dict[str, Dict[str, Any]]]]:
    head = payload.get("head", {})
    vars_list = head.get("vars") or []
    if not isinstance(vars_list, list):
        vars_list = []
    variables = [str(v) for v in vars_list]

    results = payload.get("results", {})
    raw = results.get("bindings") or []
    if not isinstance(raw, list):
        raw = []

    bindings: List[Dict[str, Dict[str, Any]]] = []
    for binding in raw:
        if not isinstance(binding, dict):
            continue
        parsed: Dict[str, Dict[str, Any]] = {}
        for var, value_obj in binding.items():
            if isinstance(value_obj, dict) and "value" in value_obj:
                parsed[var] = value_obj
            else:
                parsed[var] = {"type": "literal", "value": value_obj}
        bindings.append(parsed)
    return variables, bindings


def execute_sparql(
    endpoint_url: str,
    query: str,
    timeout_s: float = 30.0,
    method_preference: str = "POST",
) -> SourceResult:
    """
    Execute a SPARQL query against the given endpoint and return a SourceResult.

    The query is sent with HTTP POST as `application/sparql-query`, or with GET
    and the `query` parameter when `method_preference` is "GET". Failures are
    reported through the result status; the request is never retried.
    """

    headers = {
        "Accept": "application/sparql-results+json",
    }

    start = time.perf_counter()
    status = "ok"
    error: Optional[str] = None
    status_code: Optional[int] = None
    variables: List[str] = []
    bindings: List[Dict[str, Dict[str, Any]]] = []

    try:
        if method_preference.upper() == "GET":
            resp = requests.get(
                endpoint_url,
                params={"query": query},
                headers=headers,
                timeout=timeout_s,
            )
        else:
            resp = requests.post(
                endpoint_url,
                data=query.encode("utf-8"),
                headers={"Content-Type": "application/sparql-query", **headers},
                timeout=timeout_s,
            )
        status_code = resp.status_code

        if not resp.ok:
            status = "error"
            error = f"HTTP {resp.status_code}: {resp.text[:500]}"
        else:
            try:
                payload = resp.json()
                if isinstance(payload, dict):
                    variables, bindings = _parse_json(payload)
                else:
                    status = "error"
                    error = "Unexpected JSON structure from SPARQL endpoint."
            except ValueError as exc:
                status = "error"
                error = f"Failed to decode JSON from SPARQL endpoint: {exc}"
    except requests.RequestException as exc:
        status = "error"
        error = str(exc)

    elapsed_ms = (time.perf_counter() - start) * 1000.0
    rows = [{var: value["value"] for var, value in binding.items()} for binding in bindings]
    logger.debug(
        "SPARQL %s %s: %d rows in %.1f ms (status=%s)",
        method_preference.upper(),
        endpoint_url,
        len(rows),
        elapsed_ms,
        status,
    )

    return SourceResult(
        rows=rows,
        variables=variables,
        row_count=len(rows),
        elapsed_ms=elapsed_ms,
        endpoint_url=endpoint_url,
        status=status,
        error=error,
        status_code=status_code,
        bindings=bindings,
    )


@runtime_checkable
class SparqlEndpoint(Protocol):
    """Minimal interface of the endpoint collaborator used by the ranker."""

    def query(self, sparql: str) -> SourceResult:  # pragma: no cover - protocol
        ...


@dataclass
class HttpSparqlEndpoint:
    """SPARQL endpoint reached over HTTP with :func:`execute_sparql`."""

    sparql_url: str
    timeout_s: float = 30.0
    method: str = "POST"

    def query(self, sparql: str) -> SourceResult:
        return execute_sparql(
            self.sparql_url,
            sparql,
            timeout_s=self.timeout_s,
            method_preference=self.method,
        )


__all__ = [
    "SourceResult",
    "SparqlEndpoint",
    "HttpSparqlEndpoint",
    "ensure_limit",
    "execute_sparql",
]
