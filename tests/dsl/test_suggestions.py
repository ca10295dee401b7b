import pytest

from searchable.dsl.query import QueryBuilder
from searchable.dsl.suggestions import SuggestionBuilder
from searchable.errors import InvalidClauseError


def test_each_suggester_type_compiles_with_text_and_type_key():
    dsl = (
        QueryBuilder(index="posts")
        .suggest(
            lambda s: s.term("spelling", "title", "elasticsaerch", {"suggest_mode": "popular"})
            .phrase("phrase", "title.trigram", "quick brwn fox")
            .completion("autocomplete", "title.suggest", "elas", {"size": 5})
        )
        .to_dsl()
    )
    assert dsl == {
        "suggest": {
            "spelling": {
                "text": "elasticsaerch",
                "term": {"field": "title", "suggest_mode": "popular"},
            },
            "phrase": {"text": "quick brwn fox", "phrase": {"field": "title.trigram"}},
            "autocomplete": {"text": "elas", "completion": {"field": "title.suggest", "size": 5}},
        }
    }


def test_reregistering_a_name_overwrites_in_place():
    builder = SuggestionBuilder()
    builder.term("a", "title", "one").term("b", "title", "two").phrase("a", "body", "three")
    assert list(builder.state.suggesters) == ["a", "b"]
    assert builder.state.suggesters["a"].type == "phrase"
    assert builder.state.suggesters["a"].text == "three"


def test_suggesters_are_omitted_when_none_registered():
    assert "suggest" not in QueryBuilder(index="posts").match("a", "b").to_dsl()


@pytest.mark.parametrize("name, field", [("", "title"), ("s", "")])
def test_suggester_requires_name_and_field(name: str, field: str):
    with pytest.raises(InvalidClauseError):
        SuggestionBuilder().completion(name, field, "x")
