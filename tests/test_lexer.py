import pytest

from sparqled.autocompletion.lexer import line_col, tokenize
from sparqled.errors import ParseError


def kinds(text):
    return [tok.kind for tok in tokenize(text)]


def focus(text):
    (tok,) = [tok for tok in tokenize(text) if tok.kind == "POF"]
    return tok


def test_iri_and_focus():
    assert kinds("?s <http://ex.org/p> < .") == ["VAR", "IRIREF", "POF", ".", "EOF"]


def test_comparison_is_not_an_iri():
    assert kinds("FILTER(?a < 3)") == ["NAME", "(", "VAR", "POF", "INTEGER", ")", "EOF"]


def test_keyword_is_folded():
    tok = focus("?s ?p Pers<")
    assert tok.keyword == "Pers"
    assert tok.pos == 6


def test_keyword_needs_adjacency():
    assert focus("?s ?p Pers <").keyword is None


def test_prefix_is_folded():
    tok = focus("?s dbo:Pers<")
    assert (tok.prefix_label, tok.prefix_local) == ("dbo", "Pers")
    tok = focus("?s :<")
    assert (tok.prefix_label, tok.prefix_local) == ("", "")


def test_path_length_is_folded():
    tok = focus("?s 12/<")
    assert tok.path_length == 12
    assert kinds("?s 12/<") == ["VAR", "POF", "EOF"]


def test_strings_and_comments():
    assert kinds('"a # b" # comment\n\'x\'@en') == ["STRING", "STRING", "LANGTAG", "EOF"]
    assert kinds('"""multi\nline""" 1.5 2e3 "1"^^<t>') == [
        "STRING", "DECIMAL", "DOUBLE", "STRING", "DATATYPE", "IRIREF", "EOF"
    ]


def test_unexpected_character():
    with pytest.raises(ParseError) as excinfo:
        tokenize("SELECT *\n WHERE { ?s ~ }")
    assert (excinfo.value.line, excinfo.value.column) == (2, 13)


def test_line_col():
    assert line_col("ab\ncd", 0) == (1, 1)
    assert line_col("ab\ncd", 4) == (2, 2)


def test_non_ascii_names():
    assert focus("?s ?p ñandu<").keyword == "ñandu"
    tok = focus("?s ëx:Ünï<")
    assert (tok.prefix_label, tok.prefix_local) == ("ëx", "Ünï")
