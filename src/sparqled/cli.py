from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from sparqled.autocompletion.parser import SparqlParser
from sparqled.autocompletion.scope import Scope
from sparqled.autocompletion.templates import default_template, load_template
from sparqled.autocompletion.validation import validate_query
from sparqled.config import AppConfig, load_config
from sparqled.errors import DegenerateResultError, SparqledError
from sparqled.eval.popularity import DEFAULT_TOP_K, measure
from sparqled.sparql.client import ensure_limit
from sparqled.sparql.endpoints import get_endpoint

logger = logging.getLogger(__name__)


def _read_query(source: str) -> str:
    if source == "-":
        return sys.stdin.read()
    path = Path(source)
    if not path.exists():
        raise click.BadParameter(f"Query file '{source}' does not exist.", param_hint="QUERY_FILE")
    return path.read_text(encoding="utf-8")


def _config(ctx: click.Context) -> AppConfig:
    return ctx.obj["config"]


@click.group()
@click.option("--verbose", is_flag=True, help="Enable verbose logging.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="YAML configuration file (defaults to $SPARQLED_CONFIG_PATH or ./sparqled.yaml).",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[Path]) -> None:
    """Point-Of-Focus autocompletion for SPARQL queries."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(config_path)
    except SparqledError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command("complete")
@click.argument("query_file")
@click.option(
    "--template",
    "template_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Jinja2 template used to render the recommendation query.",
)
@click.option("--check", is_flag=True, help="Validate the recommendation query with rdflib.")
@click.option("--execute", is_flag=True, help="Run the recommendation query on the endpoint.")
@click.option("--endpoint", "endpoint_id", default=None, help="Endpoint id or URL (default: first configured).")
@click.option("--limit", type=click.IntRange(1, 10_000), default=None, help="Override the LIMIT of the query.")
@click.pass_context
def complete_command(
    ctx: click.Context,
    query_file: str,
    template_path: Optional[Path],
    check: bool,
    execute: bool,
    endpoint_id: Optional[str],
    limit: Optional[int],
) -> None:
    """Print the recommendation type and query for QUERY_FILE ('-' for stdin)."""
    cfg = _config(ctx)
    text = _read_query(query_file)
    try:
        template_path = template_path or cfg.recommendation.template_path
        template = load_template(template_path) if template_path else default_template()
        scope = SparqlParser(text, Scope(template=template)).parse()
        query = scope.recommendation_query()
        if limit is not None:
            query = ensure_limit(query, limit)
        if check:
            validate_query(query)
    except SparqledError as exc:
        raise click.ClickException(str(exc)) from exc

    click.echo(f"# recommendation: {scope.recommendation_type().value}")
    click.echo(query)

    if not execute:
        return
    try:
        endpoint = get_endpoint(endpoint_id, cfg)
        result = endpoint.client(cfg).query(query).raise_for_status()
    except SparqledError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(f"# {result.row_count} result(s) from {endpoint.label} in {result.elapsed_ms:.1f} ms")
    for row in result.rows:
        click.echo("\t".join(str(row.get(var, "")) for var in result.variables))


@cli.command("measure")
@click.argument("query_file")
@click.option("--endpoint", "endpoint_id", default=None, help="Endpoint id or URL (default: first configured).")
@click.option("--graph", default=None, help="Graph IRI used in FROM clauses (default: the endpoint's graph).")
@click.option(
    "--template",
    "template_path",
    type=click.Path(path_type=Path, dir_okay=False),
    default=None,
    help="Jinja2 template for the recommendation query; it must project ?POF and ?count.",
)
@click.option("--top-k", type=click.IntRange(1, 1000), default=None, help="Number of candidates to measure.")
@click.pass_context
def measure_command(
    ctx: click.Context,
    query_file: str,
    endpoint_id: Optional[str],
    graph: Optional[str],
    template_path: Optional[Path],
    top_k: Optional[int],
) -> None:
    """Rank the recommendations for QUERY_FILE and report their popularity."""
    cfg = _config(ctx)
    text = _read_query(query_file)
    try:
        endpoint = get_endpoint(endpoint_id, cfg)
        report = measure(
            endpoint.client(cfg),
            graph or endpoint.graph,
            text,
            load_template(template_path) if template_path else None,
            top_k=top_k or cfg.recommendation.top_k or DEFAULT_TOP_K,
        )
    except DegenerateResultError:
        click.echo("No recommendations")
        return
    except SparqledError as exc:
        raise click.ClickException(str(exc)) from exc

    for candidate in report.candidates:
        click.echo(f"{candidate.count}\t{candidate.value}")
    click.echo(
        f"min={report.min} max={report.max} mean={report.mean:.2f} "
        f"elapsed={report.elapsed_ms:.1f}ms"
    )


def main() -> None:  # pragma: no cover
    cli()


if __name__ == "__main__":  # pragma: no cover
    main()
