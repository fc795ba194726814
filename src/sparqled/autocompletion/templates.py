"""
Jinja2 templates used to render recommendation queries.

A template sees the following names:

- ``tps``: the triple patterns, each with ``s``, ``p``, ``o`` (rendered text),
  ``subject``, ``predicate``, ``object`` (terms) and ``leaf``.
- ``pof``: the projection expression of the Point Of Focus.
- ``path_length``: the number of hops of a path recommendation, else 0.
- ``hops``: the hop variables ``?POF1`` ... ``?POFn`` of a path recommendation.
- ``keyword``: the keyword typed before the focus, or ``None``.
- ``prefix``: the IRI prefix typed before the focus, or ``None``.
- ``prefixes``: the declared prefixes, label -> IRI.
- ``pof_subject``: the rendered subject the focus hangs off, or ``None``.

Extra names can be supplied per Scope through ``Scope.context``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Union

from jinja2 import Environment, StrictUndefined, Template, TemplateSyntaxError

from sparqled.autocompletion.terms import escape_string
from sparqled.errors import ConfigError


DEFAULT_TEMPLATE = """\
SELECT DISTINCT {{ pof }}
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
LIMIT 10
"""

_ENV = Environment(
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    autoescape=False,
    undefined=StrictUndefined,
)
_ENV.filters["sparql_string"] = escape_string


def compile_template(text: str) -> Template:
    """Compile caller-supplied template text."""

    try:
        return _ENV.from_string(text)
    except TemplateSyntaxError as exc:
        raise ConfigError(f"Invalid recommendation template (line {exc.lineno}): {exc.message}") from exc


def load_template(path: Union[str, Path]) -> Template:
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigError(f"Recommendation template not found at '{path}'.")
    return compile_template(path.read_text(encoding="utf-8"))


def default_template() -> Template:
    return compile_template(DEFAULT_TEMPLATE)


__all__ = [
    "DEFAULT_TEMPLATE",
    "compile_template",
    "load_template",
    "default_template",
]
