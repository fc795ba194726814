from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, TypedDict, Union

import yaml

from sparqled.errors import ConfigError


CONFIG_ENV_VAR = "SPARQLED_CONFIG_PATH"
DEFAULT_CONFIG_NAME = "sparqled.yaml"


class EndpointConfig(TypedDict):
    id: str
    label: str
    sparql_url: str
    graph: Optional[str]


@dataclass
class ClientConfig:
    timeout_s: float = 30.0
    method: str = "POST"


@dataclass
class RecommendationConfig:
    template_path: Optional[Path] = None
    top_k: int = 10


@dataclass
class AppConfig:
    raw: Dict[str, Any]
    endpoints: List[EndpointConfig] = field(default_factory=list)
    client: ClientConfig = field(default_factory=ClientConfig)
    recommendation: RecommendationConfig = field(default_factory=RecommendationConfig)


def _default_config_path() -> Path:
    """The default config file lives in the current working directory."""

    return Path.cwd() / DEFAULT_CONFIG_NAME


def _load_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise ConfigError(
            f"sparqled config file not found at '{path}'. "
            f"Set {CONFIG_ENV_VAR} to a valid YAML config."
        )
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse config YAML at '{path}': {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config at '{path}' must be a YAML mapping/object.")
    return data


def _coerce_endpoints(endpoints: Any) -> List[EndpointConfig]:
    if endpoints is None:
        return []
    if not isinstance(endpoints, list):
        raise ConfigError("'endpoints' must be a list.")

    coerced: List[EndpointConfig] = []
    for idx, item in enumerate(endpoints):
        if not isinstance(item, dict):
            raise ConfigError(f"Endpoint #{idx} in 'endpoints' must be a mapping.")
        try:
            eid = str(item["id"])
            label = str(item.get("label") or eid)
            url = str(item["sparql_url"])
        except KeyError as exc:
            raise ConfigError(
                f"Endpoint #{idx} in 'endpoints' is missing required key: {exc}."
            ) from exc
        if not url:
            raise ConfigError(f"Endpoint '{eid}' has empty sparql_url.")
        graph = item.get("graph")
        coerced.append(
            EndpointConfig(id=eid, label=label, sparql_url=url, graph=str(graph) if graph else None)
        )
    return coerced


def _coerce_client(section: Any) -> ClientConfig:
    if not isinstance(section, dict):
        return ClientConfig()
    method = str(section.get("method", "POST")).upper()
    if method not in ("GET", "POST"):
        raise ConfigError(f"'client.method' must be GET or POST, got '{method}'.")
    try:
        timeout_s = float(section.get("timeout_s", 30.0))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'client.timeout_s' must be a number: {exc}") from exc
    return ClientConfig(timeout_s=timeout_s, method=method)


def _coerce_recommendation(section: Any, base_dir: Path) -> RecommendationConfig:
    if not isinstance(section, dict):
        return RecommendationConfig()
    template_path = section.get("template_path")
    path: Optional[Path] = None
    if template_path:
        path = Path(str(template_path)).expanduser()
        if not path.is_absolute():
            path = base_dir / path
    try:
        top_k = int(section.get("top_k", 10))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'recommendation.top_k' must be an integer: {exc}") from exc
    if top_k < 1:
        raise ConfigError("'recommendation.top_k' must be at least 1.")
    return RecommendationConfig(template_path=path, top_k=top_k)


_CACHED_CONFIG: Optional[AppConfig] = None


def load_config(path: Union[str, Path, None] = None, force_reload: bool = False) -> AppConfig:
    """
    Load and validate the sparqled configuration.

    Precedence:
    1. An explicit `path` argument.
    2. The path from SPARQLED_CONFIG_PATH if set.
    3. `sparqled.yaml` in the working directory; if it does not exist the
       built-in defaults are used.

    Only the implicit configuration (no `path` argument) is cached.
    """

    global _CACHED_CONFIG
    if path is None and _CACHED_CONFIG is not None and not force_reload:
        return _CACHED_CONFIG

    if path is not None:
        cfg_path = Path(path).expanduser()
    else:
        env_path = os.environ.get(CONFIG_ENV_VAR)
        cfg_path = Path(env_path).expanduser() if env_path else _default_config_path()
        if not env_path and not cfg_path.exists():
            _CACHED_CONFIG = AppConfig(raw={})
            return _CACHED_CONFIG

    raw = _load_yaml(cfg_path)
    cfg = AppConfig(
        raw=raw,
        endpoints=_coerce_endpoints(raw.get("endpoints")),
        client=_coerce_client(raw.get("client") or {}),
        recommendation=_coerce_recommendation(raw.get("recommendation") or {}, cfg_path.parent),
    )
    if path is None:
        _CACHED_CONFIG = cfg
    return cfg


__all__ = [
    "CONFIG_ENV_VAR",
    "AppConfig",
    "ClientConfig",
    "RecommendationConfig",
    "EndpointConfig",
    "load_config",
]
