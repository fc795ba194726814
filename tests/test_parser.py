import pytest

from sparqled.autocompletion.parser import SparqlParser, parse_query
from sparqled.autocompletion.scope import RecommendationType, Scope
from sparqled.errors import ParseError, UnresolvedPrefixError


RDF_NS = "http://www.w3.org/1999/02/22-rdf-syntax-ns#"


def recommend(query: str) -> Scope:
    scope = parse_query(query)
    scope.recommendation_query()
    return scope


def triples(scope: Scope) -> list:
    return [(tp.s, tp.p, tp.o) for tp in scope.patterns]


def test_class_recommendation():
    scope = recommend("SELECT * WHERE { ?s a < }")
    assert triples(scope) == [("?s", "a", "?POF")]
    assert scope.recommendation_type() is RecommendationType.CLASS


def test_object_recommendation():
    scope = recommend("""
        SELECT *
        WHERE {
            ?s <aaa> <
        }
    """)
    assert triples(scope) == [("?s", "<aaa>", "?POF")]
    assert scope.recommendation_type() is RecommendationType.OBJECT


def test_two_types():
    scope = recommend("""
        PREFIX : <http://example.org/>
        SELECT * WHERE {
            ?s a :Person; a <
        }
    """)
    assert triples(scope) == [
        ("?s", "a", "<http://example.org/Person>"),
        ("?s", "a", "?POF"),
    ]
    assert scope.recommendation_type() is RecommendationType.CLASS


def test_filter_between_triples():
    scope = recommend("""# Test comment
        SELECT *
        WHERE {
            ?s a <
            FILTER (lang(?name) = "en")
            ?s <name> ?name
        }
    """)
    assert triples(scope) == [("?s", "a", "?POF"), ("?s", "<name>", "?name")]


def test_filter_comparison_is_not_a_focus():
    scope = recommend("""
        SELECT * WHERE {
            ?s <age> ?age .
            FILTER(?age < 30)
            ?s a <
        }
    """)
    assert triples(scope) == [("?s", "<age>", "?age"), ("?s", "a", "?POF")]
    assert scope.recommendation_type() is RecommendationType.CLASS


def test_subject_focus_with_comment():
    scope = recommend("""# Test comment
        SELECT *
        WHERE {
            <
            # blabla
            ?p ?o
        }
    """)
    assert triples(scope) == [("?POF", "?p", "?o")]
    assert scope.recommendation_type() is RecommendationType.SUBJECT


def test_predicate_focus_after_comment():
    scope = recommend("""
        SELECT *
        WHERE {
            ?s # blabla
                <
        }
    """)
    assert triples(scope) == [("?s", "?POF", "?FillVar")]
    assert scope.recommendation_type() is RecommendationType.PREDICATE


def test_object_focus_after_comment():
    scope = recommend("""
        SELECT *
        WHERE {
            ?s ?p # blabla
                <
        }
    """)
    assert triples(scope) == [("?s", "?p", "?POF")]
    assert scope.recommendation_type() is RecommendationType.OBJECT


def test_disconnected_patterns_are_dropped():
    scope = recommend("""
        SELECT *
        WHERE {
            ?a ?b ?c .
            ?s <
            # test
        }
    """)
    assert triples(scope) == [("?s", "?POF", "?FillVar")]


def test_prefixed_names_are_resolved():
    scope = recommend("""
        PREFIX a: <aaa>
        SELECT *
        WHERE {
            ?s a a:bbb; <
        }
    """)
    assert scope.prefixes == {"a": "aaa"}
    assert triples(scope) == [("?s", "a", "<aaabbb>"), ("?s", "?POF", "?FillVar")]
    assert scope.recommendation_type() is RecommendationType.PREDICATE


@pytest.mark.parametrize(
    "prologue, focus, expected_prefix",
    [
        ("PREFIX a: <aaa>", "?s a:<", "aaa"),
        ("PREFIX : <aaa>", "?s :<", "aaa"),
        ("PREFIX a: <aaa>", "?s a:bb<", "aaabb"),
    ],
)
def test_prefix_recommendation(prologue, focus, expected_prefix):
    scope = recommend(f"{prologue}\nSELECT * WHERE {{ {focus} }}")
    assert scope.prefix == expected_prefix
    assert triples(scope) == [("?s", "?POF", "?FillVar")]
    assert scope.recommendation_type() is RecommendationType.PREDICATE


def test_prefix_recommendation_for_class():
    scope = recommend("""
        PREFIX a: <aaa>
        PREFIX b: <bbb>
        PREFIX c: <ccc>
        SELECT *
        WHERE {
            ?s a b:<
        }
    """)
    assert scope.prefix == "bbb"
    assert scope.prefixes == {"a": "aaa", "b": "bbb", "c": "ccc"}
    assert triples(scope) == [("?s", "a", "?POF")]
    assert scope.recommendation_type() is RecommendationType.CLASS


def test_limit_and_offset_in_any_order():
    scope = recommend("""
        SELECT * WHERE {
          ?s a <
        }
        offset 10
        LIMIT 10
    """)
    assert triples(scope) == [("?s", "a", "?POF")]


def test_dataset_clauses_and_base():
    scope = recommend("""
        BASE <http://example.org/>
        SELECT DISTINCT ?s
        FROM <http://example.org/g1>
        FROM NAMED <http://example.org/g2>
        WHERE { ?s a < }
    """)
    assert scope.base == "http://example.org/"
    assert triples(scope) == [("?s", "a", "?POF")]


@pytest.mark.parametrize(
    "focus, keyword, expected, rtype",
    [
        ("?s test<", "test", ("?s", "?POF", "?FillVar"), RecommendationType.PREDICATE),
        ("?s ?p test<", "test", ("?s", "?p", "?POF"), RecommendationType.OBJECT),
        ("?s a Person-1<", "Person-1", ("?s", "a", "?POF"), RecommendationType.CLASS),
    ],
)
def test_keyword(focus, keyword, expected, rtype):
    scope = recommend(f"SELECT * WHERE {{\n  {focus}\n}}\nLIMIT 10")
    assert scope.keyword == keyword
    assert triples(scope) == [expected]
    assert scope.recommendation_type() is rtype


def test_long_iris():
    scope = recommend("""
        SELECT *
        WHERE {
          ?v0 a  <  .
          ?v1 <http://dbpedia.org/ontology/developer> ?v0 .
          ?v1 a <http://dbpedia.org/ontology/Software> .
        }
    """)
    assert triples(scope) == [
        ("?v0", "a", "?POF"),
        ("?v1", "<http://dbpedia.org/ontology/developer>", "?v0"),
        ("?v1", "a", "<http://dbpedia.org/ontology/Software>"),
    ]
    assert scope.recommendation_type() is RecommendationType.CLASS


def test_predicate_object_list():
    scope = recommend("""
        SELECT *
        WHERE {
            ?v0 a  <  ;<http://dbpedia.org/ontology/birthdate> ?v1 ;<http://xmlns.com/foaf/0.1/name> ?v2 .
        }
    """)
    assert triples(scope) == [
        ("?v0", "a", "?POF"),
        ("?v0", "<http://dbpedia.org/ontology/birthdate>", "?v1"),
        ("?v0", "<http://xmlns.com/foaf/0.1/name>", "?v2"),
    ]


def test_object_list_reuses_subject_and_predicate():
    scope = recommend("SELECT * WHERE { ?s <p> ?a, ?b, < . }")
    assert triples(scope) == [("?s", "<p>", "?a"), ("?s", "<p>", "?b"), ("?s", "<p>", "?POF")]


def test_subject_recommendation():
    scope = recommend("""
        select * {
            < ?p ?o1; a ?o2 .
            ?o ?op ?oo .
            ?a ?b ?c
        }
    """)
    assert triples(scope) == [("?POF", "?p", "?o1"), ("?POF", "a", "?o2")]
    assert scope.recommendation_type() is RecommendationType.SUBJECT


def test_predicate_recommendation():
    scope = recommend("""
        select * {
            ?s < ; a ?o .
            ?o ?op ?oo .
            ?a ?b ?c
        }
    """)
    assert triples(scope) == [("?s", "?POF", "?FillVar"), ("?s", "a", "?o"), ("?o", "?op", "?oo")]
    assert scope.recommendation_type() is RecommendationType.PREDICATE


def test_literals():
    scope = recommend("""
        select * {
            ?s <p1> < ; a ?o .
            ?o ?p "test" .
            ?o <label> "chat"@fr .
        }
    """)
    assert triples(scope) == [
        ("?s", "<p1>", "?POF"),
        ("?s", "a", "?o"),
        ("?o", "?p", '"test"'),
        ("?o", "<label>", '"chat"@fr'),
    ]
    assert scope.recommendation_type() is RecommendationType.OBJECT


def test_typed_literal_and_escapes():
    scope = recommend(r"""
        PREFIX xsd: <http://www.w3.org/2001/XMLSchema#>
        select * { ?s <age> "42"^^xsd:integer ; <name> "say \"hi\"" ; < }
    """)
    objects = [tp.object for tp in scope.patterns]
    assert objects[0].datatype is not None
    assert str(objects[0].datatype) == "http://www.w3.org/2001/XMLSchema#integer"
    assert str(objects[1]) == 'say "hi"'


@pytest.mark.parametrize(
    "query, expected",
    [
        (
            "select * { ?s <p1> ?o . OPTIONAL { ?o < } . }",
            [("?s", "<p1>", "?o"), ("?o", "?POF", "?FillVar")],
        ),
        (
            "select * { OPTIONAL { ?o < } . ?s <p1> ?o . }",
            [("?o", "?POF", "?FillVar"), ("?s", "<p1>", "?o")],
        ),
        (
            "select * { ?s <p1> ?o . OPTIONAL { ?o < } . ?s <p1> ?o . }",
            [("?s", "<p1>", "?o"), ("?o", "?POF", "?FillVar"), ("?s", "<p1>", "?o")],
        ),
    ],
)
def test_optional(query, expected):
    scope = recommend(query)
    assert triples(scope) == expected
    assert scope.recommendation_type() is RecommendationType.PREDICATE


def test_union_and_graph():
    scope = recommend("""
        SELECT * WHERE {
            { ?s a <A> } UNION { ?s a <B> } UNION { ?x ?y ?z }
            GRAPH ?g { ?s < }
            MINUS { ?s <p> ?q }
        }
    """)
    assert triples(scope) == [
        ("?s", "a", "<A>"),
        ("?s", "a", "<B>"),
        ("?s", "?POF", "?FillVar"),
        ("?s", "<p>", "?q"),
    ]


def test_blank_node_property_list():
    scope = recommend("SELECT * { ?s <p> [ <q> < ] }")
    assert triples(scope) == [("?_anon0", "<q>", "?POF"), ("?s", "<p>", "?_anon0")]
    assert scope.recommendation_type() is RecommendationType.OBJECT


def test_blank_node_subject_and_empty_brackets():
    scope = recommend("SELECT * { [ a <Person> ] <knows> [] ; < }")
    assert triples(scope) == [
        ("?_anon0", "a", "<Person>"),
        ("?_anon0", "<knows>", "?_anon1"),
        ("?_anon0", "?POF", "?FillVar"),
    ]


def test_collection():
    scope = recommend("SELECT * { ?s <p> ( ?a ?b ) . ?s < }")
    assert triples(scope) == [
        ("?_anon0", f"<{RDF_NS}first>", "?a"),
        ("?_anon0", f"<{RDF_NS}rest>", "?_anon1"),
        ("?_anon1", f"<{RDF_NS}first>", "?b"),
        ("?_anon1", f"<{RDF_NS}rest>", f"<{RDF_NS}nil>"),
        ("?s", "<p>", "?_anon0"),
        ("?s", "?POF", "?FillVar"),
    ]


def test_simple_property_paths():
    scope = recommend("SELECT * { ?s <p>/^<q> ?o . ?o <r>|<t> ?x . ?x < }")
    assert triples(scope) == [
        ("?s", "<p>/^<q>", "?o"),
        ("?o", "<r>|<t>", "?x"),
        ("?x", "?POF", "?FillVar"),
    ]


@pytest.mark.parametrize("op", ["*", "+", "?"])
def test_repetition_paths_are_rejected(op):
    with pytest.raises(ParseError, match="Repetition"):
        parse_query(f"SELECT * {{ ?s <p>{op} ?o . ?o < }}")


def test_missing_object():
    with pytest.raises(ParseError) as info:
        parse_query("""
        SELECT *
        WHERE {
            ?s <aaa>; <
        }
        """)
    assert info.value.line == 4
    assert info.value.position > 0


def test_unterminated_group():
    with pytest.raises(ParseError, match="Unterminated"):
        parse_query("SELECT * WHERE { ?s a <")


def test_only_one_focus():
    with pytest.raises(ParseError, match="Only one Point Of Focus"):
        parse_query("SELECT * WHERE { < a < }")


def test_undeclared_prefix():
    with pytest.raises(UnresolvedPrefixError) as info:
        parse_query("SELECT * WHERE { ?s foo:bar < }")
    assert info.value.prefix == "foo"


def test_undeclared_prefix_before_focus():
    with pytest.raises(UnresolvedPrefixError):
        parse_query("SELECT * WHERE { ?s foo:< }")


def test_path_length_only_for_predicates():
    with pytest.raises(ParseError, match="path length"):
        parse_query("SELECT * WHERE { ?s ?p 2/< }")


def test_query_without_focus():
    scope = recommend("SELECT * WHERE { ?s ?p ?o }")
    assert scope.patterns == []
    assert scope.recommendation_type() is RecommendationType.NONE


def test_reset_then_reparse():
    query = """
        SELECT *
        WHERE {
            ?a ?b ?c .
            ?s <
            # test
        }
    """
    parser = SparqlParser(query)
    first = parser.parse().recommendation_query()
    first_type = parser.scope.recommendation_type()

    parser.reset()
    second = parser.parse().recommendation_query()
    assert second == first
    assert parser.scope.recommendation_type() is first_type


def test_reset_with_other_query_matches_fresh_scope():
    parser = SparqlParser("PREFIX a: <aaa> SELECT * { ?s a:< ; <p> [ <q> ?x ] }")
    parser.parse().recommendation_query()

    other = "SELECT * { ?x test< }"
    parser.reset(other)
    reused = parser.parse().recommendation_query()

    fresh_scope = parse_query(other)
    assert reused == fresh_scope.recommendation_query()
    assert parser.scope.prefix is None
    assert parser.scope.prefixes == {}
