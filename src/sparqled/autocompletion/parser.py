"""
Recursive-descent parser for the SELECT profile of SPARQL used by the
autocompletion.

The parser does not build a syntax tree. Its production handlers feed the
Scope builder (``set_subject``, ``set_predicate``, ``set_object``,
``add_triple_pattern``, ...) so that once the text has been consumed the Scope
holds every triple pattern of the query, with ``?POF`` at the Point Of Focus.
"""

from __future__ import annotations

import contextlib
import logging
import re
from typing import Iterator, List, Optional

from rdflib import BNode, Literal, URIRef, Variable
from rdflib.namespace import RDF, XSD
from rdflib.paths import AlternativePath, InvPath, SequencePath

from sparqled.autocompletion.lexer import Token, line_col, tokenize
from sparqled.autocompletion.scope import Cursor, Scope
from sparqled.autocompletion.terms import FILL_VAR, POF, Term
from sparqled.errors import ParseError, UnresolvedPrefixError

logger = logging.getLogger(__name__)

SUBJECT, PREDICATE, OBJECT = "subject", "predicate", "object"

_OPENING = {"(": ")", "{": "}", "[": "]"}
_GROUP_KEYWORDS = {"OPTIONAL", "MINUS", "GRAPH", "FILTER", "BIND", "VALUES", "SERVICE"}
_MODIFIER_KEYWORDS = {"GROUP", "HAVING", "ORDER", "LIMIT", "OFFSET"}
_TERM_KINDS = {"VAR", "IRIREF", "PNAME", "BNODE", "STRING", "INTEGER", "DECIMAL", "DOUBLE", "POF", "[", "(", "+", "-"}
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "b": "\b", "f": "\f", '"': '"', "'": "'", "\\": "\\"}
_ESCAPE_RE = re.compile(r"\\(u[0-9A-Fa-f]{4}|U[0-9A-Fa-f]{8}|.)", re.DOTALL)


def _unescape(value: str) -> str:
    def _replace(match: re.Match) -> str:
        esc = match.group(1)
        if esc[0] in "uU" and len(esc) > 1:
            return chr(int(esc[1:], 16))
        return _ESCAPES.get(esc, esc)

    return _ESCAPE_RE.sub(_replace, value)


class SparqlParser:
    """
    Parse one query into a :class:`Scope`.

    The same parser can serve several requests: :meth:`reset` clears the Scope
    and loads the next query text.
    """

    def __init__(self, text: str = "", scope: Optional[Scope] = None) -> None:
        self.text = text
        self.scope = scope if scope is not None else Scope()
        self._tokens: List[Token] = []
        self._index = 0
        self._anon = 0
        self._focus: Optional[Token] = None

    def reset(self, text: Optional[str] = None) -> None:
        self.scope.reset()
        if text is not None:
            self.text = text
        self._tokens = []
        self._index = 0
        self._anon = 0
        self._focus = None

    def parse(self) -> Scope:
        """Parse the query text; raises :class:`ParseError` on malformed input."""

        self._tokens = tokenize(self.text)
        self._index = 0
        self._anon = 0
        self._focus = None
        self._query()
        if self._focus is None:
            logger.debug("No Point Of Focus found in the query.")
        return self.scope

    # -- token helpers --------------------------------------------------------

    @property
    def _tok(self) -> Token:
        return self._tokens[self._index]

    def _peek(self, offset: int = 1) -> Token:
        index = min(self._index + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        tok = self._tokens[self._index]
        if tok.kind != "EOF":
            self._index += 1
        return tok

    def _is_keyword(self, *names: str, tok: Optional[Token] = None) -> bool:
        tok = tok or self._tok
        return tok.kind == "NAME" and tok.value.upper() in names

    def _error(self, message: str, tok: Optional[Token] = None) -> ParseError:
        tok = tok or self._tok
        line, column = line_col(self.text, tok.pos)
        return ParseError(message, tok.pos, line, column)

    def _describe(self, tok: Token) -> str:
        return "end of input" if tok.kind == "EOF" else repr(tok.value)

    def _expect(self, kind: str, what: Optional[str] = None) -> Token:
        if self._tok.kind != kind:
            raise self._error(f"Expected {what or repr(kind)} but found {self._describe(self._tok)}")
        return self._advance()

    def _expect_keyword(self, name: str) -> Token:
        if not self._is_keyword(name):
            raise self._error(f"Expected {name} but found {self._describe(self._tok)}")
        return self._advance()

    def _skip_balanced(self) -> None:
        opening = self._advance()
        stack = [_OPENING[opening.kind]]
        while stack:
            tok = self._advance()
            if tok.kind == "EOF":
                raise self._error(f"Unbalanced {opening.value!r}", opening)
            if tok.kind in _OPENING:
                stack.append(_OPENING[tok.kind])
            elif tok.kind == stack[-1]:
                stack.pop()
            elif tok.kind in (")", "}", "]"):
                raise self._error(f"Unexpected {tok.value!r}", tok)

    @contextlib.contextmanager
    def _nested(self) -> Iterator[None]:
        saved = self.scope.current
        self.scope.current = Cursor()
        try:
            yield
        finally:
            self.scope.current = saved

    def _fresh_variable(self) -> Variable:
        var = Variable(f"_anon{self._anon}")
        self._anon += 1
        return var

    # -- query structure ------------------------------------------------------

    def _query(self) -> None:
        self._prologue()
        self._select_clause()
        self._dataset_clauses()
        if self._is_keyword("WHERE"):
            self._advance()
        self._group_graph_pattern()
        self._solution_modifiers()
        self._expect("EOF", "end of query")

    def _prologue(self) -> None:
        while True:
            if self._is_keyword("BASE"):
                self._advance()
                self.scope.set_base(self._expect("IRIREF", "an IRI").value[1:-1])
            elif self._is_keyword("PREFIX"):
                self._advance()
                tok = self._expect("PNAME", "a prefix label")
                label, _, local = tok.value.partition(":")
                if local:
                    raise self._error(f"Invalid prefix label {tok.value!r}", tok)
                iri = self._expect("IRIREF", "an IRI").value[1:-1]
                self.scope.add_prefix(label, iri)
            else:
                return

    def _select_clause(self) -> None:
        self._expect_keyword("SELECT")
        if self._is_keyword("DISTINCT", "REDUCED"):
            self._advance()
        if self._tok.kind == "*":
            self._advance()
            return
        count = 0
        while self._tok.kind in ("VAR", "("):
            if self._tok.kind == "VAR":
                self._advance()
            else:
                self._skip_balanced()
            count += 1
        if count == 0:
            raise self._error("Expected '*' or a projection after SELECT")

    def _dataset_clauses(self) -> None:
        while self._is_keyword("FROM"):
            self._advance()
            if self._is_keyword("NAMED"):
                self._advance()
            if self._tok.kind == "PNAME":
                self._prefixed_name(self._advance())
            else:
                self._expect("IRIREF", "a graph IRI")

    def _solution_modifiers(self) -> None:
        while self._tok.kind != "EOF":
            if self._is_keyword("LIMIT", "OFFSET"):
                self._advance()
                self._expect("INTEGER", "an integer")
            elif self._is_keyword("GROUP", "ORDER"):
                self._advance()
                self._expect_keyword("BY")
                self._skip_until_modifier()
            elif self._is_keyword("HAVING"):
                self._advance()
                self._skip_until_modifier()
            else:
                raise self._error(f"Unexpected {self._describe(self._tok)} after the query pattern")

    def _skip_until_modifier(self) -> None:
        start = self._index
        while self._tok.kind != "EOF" and not self._is_keyword(*_MODIFIER_KEYWORDS):
            if self._tok.kind in _OPENING:
                self._skip_balanced()
            else:
                self._advance()
        if self._index == start:
            raise self._error("Expected a condition")

    # -- graph patterns -------------------------------------------------------

    def _group_graph_pattern(self) -> None:
        opening = self._expect("{", "'{'")
        if self._is_keyword("SELECT"):
            raise self._error("Sub-queries are not supported")
        while True:
            tok = self._tok
            if tok.kind == "}":
                self._advance()
                return
            if tok.kind == "EOF":
                raise self._error("Unterminated group graph pattern", opening)
            if tok.kind == ".":
                self._advance()
            elif tok.kind == "{":
                self._group_graph_pattern()
                while self._is_keyword("UNION"):
                    self._advance()
                    self._group_graph_pattern()
            elif self._is_keyword(*_GROUP_KEYWORDS):
                self._graph_pattern_not_triples()
            else:
                self._triples_same_subject()
                if self._tok.kind not in (".", "}", "{", "EOF") and not self._is_keyword(*_GROUP_KEYWORDS):
                    raise self._error(f"Expected '.' or '}}' but found {self._describe(self._tok)}")

    def _graph_pattern_not_triples(self) -> None:
        keyword = self._advance().value.upper()
        if keyword in ("OPTIONAL", "MINUS"):
            self._group_graph_pattern()
        elif keyword in ("GRAPH", "SERVICE"):
            if keyword == "SERVICE" and self._is_keyword("SILENT"):
                self._advance()
            if self._tok.kind not in ("VAR", "IRIREF", "PNAME"):
                raise self._error(f"Expected a variable or an IRI after {keyword}")
            self._var_or_term(SUBJECT)
            self._group_graph_pattern()
        elif keyword == "FILTER":
            self._constraint()
        elif keyword == "BIND":
            if self._tok.kind != "(":
                raise self._error("Expected '(' after BIND")
            self._skip_balanced()
        else:  # VALUES
            if self._tok.kind == "VAR":
                self._advance()
            elif self._tok.kind == "(":
                self._skip_balanced()
            else:
                raise self._error("Expected variables after VALUES")
            if self._tok.kind != "{":
                raise self._error("Expected '{' after VALUES variables")
            self._skip_balanced()

    def _constraint(self) -> None:
        if self._tok.kind == "(":
            self._skip_balanced()
            return
        if self._is_keyword("NOT"):
            self._advance()
            self._expect_keyword("EXISTS")
        if self._is_keyword("EXISTS"):
            self._advance()
            if self._tok.kind != "{":
                raise self._error("Expected '{' after EXISTS")
            self._skip_balanced()
            return
        if self._tok.kind in ("NAME", "PNAME", "IRIREF") and self._peek().kind == "(":
            self._advance()
            self._skip_balanced()
            return
        raise self._error("Expected a constraint after FILTER")

    # -- triples --------------------------------------------------------------

    def _triples_same_subject(self) -> None:
        if self._tok.kind == "[" and self._peek().kind != "]":
            subject = self._blank_node_property_list()
            required = False
        elif self._tok.kind == "(":
            subject = self._collection()
            required = False
        else:
            subject = self._graph_node(SUBJECT)
            required = True
        self.scope.set_subject(subject)
        if not self._starts_verb():
            if required:
                raise self._error(f"Expected a predicate but found {self._describe(self._tok)}")
            return
        self._property_list()

    def _starts_verb(self) -> bool:
        tok = self._tok
        return tok.kind in ("VAR", "IRIREF", "PNAME", "POF", "^", "(", "!") or (
            tok.kind == "NAME" and tok.value == "a"
        )

    def _starts_object(self) -> bool:
        tok = self._tok
        return tok.kind in _TERM_KINDS or (
            tok.kind == "NAME" and tok.value.lower() in ("true", "false")
        )

    def _property_list(self) -> None:
        while True:
            predicate = self._verb()
            self.scope.set_predicate(predicate)
            self._object_list(isinstance(predicate, Variable) and predicate == POF)
            if self._tok.kind != ";":
                return
            while self._tok.kind == ";":
                self._advance()
            if not self._starts_verb():
                return

    def _object_list(self, focus_predicate: bool) -> None:
        if not self._starts_object():
            if not focus_predicate:
                raise self._error(f"Expected an object but found {self._describe(self._tok)}")
            self.scope.set_object(FILL_VAR)
            self.scope.add_triple_pattern()
            return
        while True:
            self.scope.set_object(self._object())
            self.scope.add_triple_pattern()
            if self._tok.kind != ",":
                return
            self._advance()

    def _object(self) -> Term:
        if self._tok.kind == "[" and self._peek().kind != "]":
            return self._blank_node_property_list()
        if self._tok.kind == "(":
            return self._collection()
        return self._graph_node(OBJECT)

    def _graph_node(self, position: str) -> Term:
        if self._tok.kind == "[":
            self._advance()
            self._expect("]", "']'")
            return self._fresh_variable()
        return self._var_or_term(position)

    def _blank_node_property_list(self) -> Variable:
        self._expect("[", "'['")
        node = self._fresh_variable()
        with self._nested():
            self.scope.set_subject(node)
            if not self._starts_verb():
                raise self._error("Expected a predicate inside '[ ]'")
            self._property_list()
        self._expect("]", "']'")
        return node

    def _collection(self) -> Term:
        opening = self._expect("(", "'('")
        items: List[Term] = []
        while self._tok.kind != ")":
            if self._tok.kind == "EOF":
                raise self._error("Unterminated collection", opening)
            items.append(self._object())
        self._advance()
        if not items:
            return RDF.nil
        nodes = [self._fresh_variable() for _ in items]
        with self._nested():
            for index, item in enumerate(items):
                self.scope.set_subject(nodes[index])
                self.scope.set_predicate(RDF.first)
                self.scope.set_object(item)
                self.scope.add_triple_pattern()
                self.scope.set_predicate(RDF.rest)
                self.scope.set_object(nodes[index + 1] if index + 1 < len(nodes) else RDF.nil)
                self.scope.add_triple_pattern()
        return nodes[0]

    # -- predicates and property paths ----------------------------------------

    def _verb(self) -> Term:
        tok = self._tok
        if tok.kind == "POF":
            return self._point_of_focus(self._advance(), PREDICATE)
        if tok.kind == "VAR":
            return Variable(self._advance().value[1:])
        return self._path()

    def _path(self) -> Term:
        alternatives = [self._path_sequence()]
        while self._tok.kind == "|":
            self._advance()
            alternatives.append(self._path_sequence())
        if len(alternatives) == 1:
            return alternatives[0]
        return AlternativePath(*alternatives)

    def _path_sequence(self) -> Term:
        steps = [self._path_elt_or_inverse()]
        while self._tok.kind == "/":
            self._advance()
            steps.append(self._path_elt_or_inverse())
        if len(steps) == 1:
            return steps[0]
        return SequencePath(*steps)

    def _path_elt_or_inverse(self) -> Term:
        inverse = False
        if self._tok.kind == "^":
            self._advance()
            inverse = True
        elt = self._path_primary()
        if self._tok.kind in ("*", "+", "?"):
            raise self._error("Repetition path operators are not supported")
        return InvPath(elt) if inverse else elt

    def _path_primary(self) -> Term:
        tok = self._tok
        if tok.kind == "IRIREF":
            return URIRef(self._advance().value[1:-1])
        if tok.kind == "PNAME":
            return self._prefixed_name(self._advance())
        if tok.kind == "NAME" and tok.value == "a":
            self._advance()
            return RDF.type
        if tok.kind == "(":
            self._advance()
            path = self._path()
            self._expect(")", "')'")
            return path
        if tok.kind == "!":
            raise self._error("Negated property sets are not supported")
        raise self._error(f"Expected a predicate but found {self._describe(tok)}")

    # -- terms ----------------------------------------------------------------

    def _var_or_term(self, position: str) -> Term:
        tok = self._tok
        kind = tok.kind
        if kind == "POF":
            return self._point_of_focus(self._advance(), position)
        if kind == "VAR":
            return Variable(self._advance().value[1:])
        if kind == "IRIREF":
            return URIRef(self._advance().value[1:-1])
        if kind == "PNAME":
            return self._prefixed_name(self._advance())
        if kind == "BNODE":
            return BNode(self._advance().value[2:])
        if kind == "STRING":
            return self._literal()
        if kind in ("INTEGER", "DECIMAL", "DOUBLE", "+", "-"):
            return self._numeric()
        if kind == "NAME" and tok.value.lower() in ("true", "false"):
            return Literal(self._advance().value.lower(), datatype=XSD.boolean)
        raise self._error(f"Expected a {position} but found {self._describe(tok)}")

    def _prefixed_name(self, tok: Token) -> URIRef:
        label, _, local = tok.value.partition(":")
        return URIRef(self._resolve(label, tok) + local)

    def _resolve(self, label: str, tok: Token) -> str:
        try:
            return self.scope.prefixes[label]
        except KeyError:
            line, column = line_col(self.text, tok.pos)
            raise UnresolvedPrefixError(label, tok.pos, line, column) from None

    def _literal(self) -> Literal:
        raw = self._advance().value
        quote = 3 if raw[:3] in ('"""', "'''") else 1
        lexical = _unescape(raw[quote:-quote])
        if self._tok.kind == "LANGTAG":
            return Literal(lexical, lang=self._advance().value[1:])
        if self._tok.kind == "DATATYPE":
            self._advance()
            if self._tok.kind == "IRIREF":
                datatype = URIRef(self._advance().value[1:-1])
            elif self._tok.kind == "PNAME":
                datatype = self._prefixed_name(self._advance())
            else:
                raise self._error("Expected a datatype IRI after '^^'")
            return Literal(lexical, datatype=datatype)
        return Literal(lexical)

    def _numeric(self) -> Literal:
        sign = ""
        if self._tok.kind in ("+", "-"):
            sign = self._advance().value
            if self._tok.kind not in ("INTEGER", "DECIMAL", "DOUBLE"):
                raise self._error(f"Expected a number after {sign!r}")
        tok = self._advance()
        datatype = {"INTEGER": XSD.integer, "DECIMAL": XSD.decimal, "DOUBLE": XSD.double}[tok.kind]
        return Literal(sign + tok.value, datatype=datatype)

    def _point_of_focus(self, tok: Token, position: str) -> Variable:
        if self._focus is not None:
            raise self._error("Only one Point Of Focus is allowed per query", tok)
        self._focus = tok
        if tok.path_length is not None:
            if position != PREDICATE:
                raise self._error("A path length is only allowed in predicate position", tok)
            if tok.path_length < 1:
                raise self._error("The path length must be at least 1", tok)
            self.scope.set_path_length(tok.path_length)
        if tok.prefix_label is not None:
            self.scope.set_prefix(self._resolve(tok.prefix_label, tok) + (tok.prefix_local or ""))
        if tok.keyword:
            self.scope.set_keyword(tok.keyword)
        logger.debug("Point Of Focus in %s position at offset %d", position, tok.pos)
        return POF


def parse_query(text: str, scope: Optional[Scope] = None) -> Scope:
    """Convenience wrapper: parse ``text`` into ``scope`` (a fresh Scope by default)."""

    return SparqlParser(text, scope).parse()


__all__ = ["SparqlParser", "parse_query"]
