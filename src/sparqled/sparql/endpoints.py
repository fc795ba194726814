from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from sparqled.config import AppConfig, EndpointConfig, load_config
from sparqled.errors import ConfigError
from sparqled.sparql.client import HttpSparqlEndpoint


@dataclass
class Endpoint:
    """Resolved endpoint with id, label, SPARQL URL and default graph."""

    id: str
    label: str
    sparql_url: str
    graph: Optional[str] = None

    def client(self, cfg: Optional[AppConfig] = None) -> HttpSparqlEndpoint:
        """Build the HTTP collaborator for this endpoint using the client settings."""

        cfg = cfg or load_config()
        return HttpSparqlEndpoint(
            sparql_url=self.sparql_url,
            timeout_s=cfg.client.timeout_s,
            method=cfg.client.method,
        )


def _to_endpoint(cfg: EndpointConfig) -> Endpoint:
    return Endpoint(id=cfg["id"], label=cfg["label"], sparql_url=cfg["sparql_url"], graph=cfg.get("graph"))


def get_endpoints(cfg: Optional[AppConfig] = None) -> List[Endpoint]:
    cfg = cfg or load_config()
    return [_to_endpoint(e) for e in cfg.endpoints]


def get_default_endpoint(cfg: Optional[AppConfig] = None) -> Endpoint:
    endpoints = get_endpoints(cfg)
    if not endpoints:
        raise ConfigError("No SPARQL endpoints available from configuration.")
    return endpoints[0]


def get_endpoint(endpoint_id: Optional[str], cfg: Optional[AppConfig] = None) -> Endpoint:
    """
    Resolve an endpoint by id, or the default endpoint when `endpoint_id` is None.

    A value that looks like a URL is accepted as an ad-hoc endpoint so the CLI
    can be pointed at an endpoint that is not configured.
    """

    if endpoint_id is None:
        return get_default_endpoint(cfg)
    if endpoint_id.startswith(("http://", "https://")):
        return Endpoint(id=endpoint_id, label=endpoint_id, sparql_url=endpoint_id)
    for endpoint in get_endpoints(cfg):
        if endpoint.id == endpoint_id:
            return endpoint
    raise ConfigError(f"Unknown endpoint '{endpoint_id}'.")


__all__ = [
    "Endpoint",
    "get_endpoints",
    "get_default_endpoint",
    "get_endpoint",
]
