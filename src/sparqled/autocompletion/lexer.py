"""
Tokenizer for the SPARQL profile understood by the autocompletion parser.

Besides the usual SPARQL tokens, the tokenizer recognises the Point Of Focus
marker: a ``<`` that does not open a complete IRI reference. Text typed right
before the marker is folded into the POF token:

- ``word<``    -> keyword filter
- ``pfx:<``    -> IRI prefix filter (``pfx:loc<`` also keeps ``loc``)
- ``3/<``      -> path of length 3
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

from sparqled.errors import ParseError


@dataclass
class Token:
    kind: str
    value: str
    pos: int
    end: int
    keyword: Optional[str] = None
    prefix_label: Optional[str] = None
    prefix_local: Optional[str] = None
    path_length: Optional[int] = None


_TOKEN_RE = re.compile(
    r"""
      (?P<WS>\s+)
    | (?P<COMMENT>\#[^\n]*)
    | (?P<IRIREF><[^<>"{}|^`\\\x00-\x20]*>)
    | (?P<POF><)
    | (?P<STRING>\"\"\"(?:[^"\\]|\\.|"(?!""))*\"\"\"
                |'''(?:[^'\\]|\\.|'(?!''))*'''
                |"(?:[^"\\\n\r]|\\.)*"
                |'(?:[^'\\\n\r]|\\.)*')
    | (?P<VAR>[?$][A-Za-z0-9_\u00b7-\uffff]+)
    | (?P<BNODE>_:[A-Za-z0-9_](?:[\w.\-]*[\w\-])?)
    | (?P<PNAME>(?:[^\W\d_](?:[\w.\-]*[\w\-])?)?:(?:[\w:%\-](?:[\w.:%\-]*[\w:%\-])?)?)
    | (?P<LANGTAG>@[A-Za-z]+(?:-[A-Za-z0-9]+)*)
    | (?P<DOUBLE>(?:\d+\.\d*|\.\d+|\d+)[eE][+-]?\d+)
    | (?P<DECIMAL>\d*\.\d+)
    | (?P<INTEGER>\d+)
    | (?P<NAME>[^\W\d][\w\-]*)
    | (?P<DATATYPE>\^\^)
    | (?P<OP>&&|\|\||!=|>=)
    | (?P<PUNCT>[{}()\[\];,.*/|^!+?=>\-])
    """,
    re.VERBOSE,
)


def line_col(text: str, pos: int) -> tuple[int, int]:
    line = text.count("\n", 0, pos) + 1
    column = pos - (text.rfind("\n", 0, pos) + 1) + 1
    return line, column


def _raw_tokens(text: str) -> List[Token]:
    tokens: List[Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            line, column = line_col(text, pos)
            raise ParseError(f"Unexpected character {text[pos]!r}", pos, line, column)
        kind = match.lastgroup or ""
        value = match.group()
        if kind not in ("WS", "COMMENT"):
            if kind in ("PUNCT", "OP"):
                kind = value
            tokens.append(Token(kind=kind, value=value, pos=pos, end=match.end()))
        pos = match.end()
    return tokens


def _fold_pof(tokens: List[Token]) -> List[Token]:
    folded: List[Token] = []
    for tok in tokens:
        if tok.kind != "POF" or not folded:
            folded.append(tok)
            continue
        prev = folded[-1]
        if (
            prev.kind == "/"
            and len(folded) > 1
            and folded[-2].kind == "INTEGER"
        ):
            tok.path_length = int(folded[-2].value)
            tok.pos = folded[-2].pos
            del folded[-2:]
        elif prev.end == tok.pos and prev.kind == "PNAME":
            label, _, local = prev.value.partition(":")
            tok.prefix_label = label
            tok.prefix_local = local
            tok.pos = prev.pos
            folded.pop()
        elif prev.end == tok.pos and prev.kind in ("NAME", "INTEGER", "DECIMAL"):
            tok.keyword = prev.value
            tok.pos = prev.pos
            folded.pop()
        folded.append(tok)
    return folded


def tokenize(text: str) -> List[Token]:
    """Split query text into tokens, ending with an ``EOF`` token."""

    tokens = _fold_pof(_raw_tokens(text))
    tokens.append(Token(kind="EOF", value="", pos=len(text), end=len(text)))
    return tokens


__all__ = ["Token", "tokenize", "line_col"]
