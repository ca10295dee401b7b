import pytest

from searchable.dsl import clauses
from searchable.dsl.aggregations import AggregationBuilder, AggregationState, Bucket
from searchable.dsl.compiler import compile_aggregations
from searchable.dsl.query import QueryBuilder
from searchable.errors import DuplicateAggregationNameError, InvalidAggregationError


def test_metric_aggregation():
    dsl = QueryBuilder(index="people").aggregate(lambda b: b.average("avg_age", "age")).to_dsl()
    assert dsl == {"aggs": {"avg_age": {"avg": {"field": "age"}}}}


def test_bucket_without_children_omits_aggs_key():
    dsl = (
        QueryBuilder(index="people")
        .aggregate(lambda b: b.terms("by_city", "city", {"size": 5}))
        .to_dsl()
    )
    assert dsl == {"aggs": {"by_city": {"terms": {"field": "city", "size": 5}}}}
    assert "aggs" not in dsl["aggs"]["by_city"]


def test_within_with_no_registrations_still_omits_aggs_key():
    state = AggregationState()
    AggregationBuilder(state.roots).terms("by_city", "city").within("by_city", lambda b: None)
    node = state.roots["by_city"]
    assert isinstance(node, Bucket)
    assert node.children is None
    assert compile_aggregations(state.roots) == {"by_city": {"terms": {"field": "city"}}}


def test_sub_aggregations_nest_under_their_bucket():
    dsl = (
        QueryBuilder(index="sales")
        .aggregate(
            lambda b: b.date_histogram("per_month", "sold_at", "month")
            .within(
                "per_month",
                lambda m: m.sum("revenue", "price")
                .terms("top_products", "product", {"size": 3})
                .within("top_products", lambda p: p.max("max_price", "price"))
                .cumulative_sum("running_revenue", "revenue"),
            )
            .stats("price_stats", "price")
        )
        .to_dsl()
    )
    assert dsl == {
        "aggs": {
            "per_month": {
                "date_histogram": {"field": "sold_at", "calendar_interval": "month"},
                "aggs": {
                    "revenue": {"sum": {"field": "price"}},
                    "top_products": {
                        "terms": {"field": "product", "size": 3},
                        "aggs": {"max_price": {"max": {"field": "price"}}},
                    },
                    "running_revenue": {"cumulative_sum": {"buckets_path": "revenue"}},
                },
            },
            "price_stats": {"stats": {"field": "price"}},
        }
    }


def test_repeated_aggregate_calls_accumulate():
    dsl = (
        QueryBuilder(index="people")
        .aggregate(lambda b: b.min("youngest", "age"))
        .aggregate(lambda b: b.max("oldest", "age"))
        .to_dsl()
    )
    assert list(dsl["aggs"]) == ["youngest", "oldest"]


def test_duplicate_name_in_same_scope_fails():
    builder = QueryBuilder(index="people").aggregate(lambda b: b.average("age", "age"))
    with pytest.raises(DuplicateAggregationNameError) as exc_info:
        builder.aggregate(lambda b: b.sum("age", "age"))
    assert exc_info.value.name == "age"


def test_same_name_in_different_scopes_is_allowed():
    dsl = (
        QueryBuilder(index="people")
        .aggregate(
            lambda b: b.terms("by_city", "city")
            .average("avg_age", "age")
            .within("by_city", lambda c: c.average("avg_age", "age"))
        )
        .to_dsl()
    )
    assert dsl["aggs"]["avg_age"] == dsl["aggs"]["by_city"]["aggs"]["avg_age"]


def test_duplicate_name_inside_within_fails():
    with pytest.raises(DuplicateAggregationNameError):
        QueryBuilder(index="people").aggregate(
            lambda b: b.terms("by_city", "city").within(
                "by_city", lambda c: c.average("avg", "age").sum("avg", "age")
            )
        )


def test_within_requires_existing_bucket():
    with pytest.raises(InvalidAggregationError, match="No aggregation named"):
        QueryBuilder(index="people").aggregate(lambda b: b.within("missing", lambda c: None))
    with pytest.raises(InvalidAggregationError, match="cannot hold sub-aggregations"):
        QueryBuilder(index="people").aggregate(
            lambda b: b.average("avg_age", "age").within("avg_age", lambda c: None)
        )


def test_filter_and_nested_buckets():
    dsl = (
        QueryBuilder(index="posts")
        .aggregate(
            lambda b: b.filter("published", clauses.term("status", "published"))
            .within("published", lambda p: p.value_count("n", "id"))
            .nested("tags", "tags")
            .within("tags", lambda t: t.terms("names", "tags.name"))
        )
        .to_dsl()
    )
    assert dsl["aggs"] == {
        "published": {
            "filter": {"term": {"status": "published"}},
            "aggs": {"n": {"value_count": {"field": "id"}}},
        },
        "tags": {
            "nested": {"path": "tags"},
            "aggs": {"names": {"terms": {"field": "tags.name"}}},
        },
    }


def test_range_histogram_and_percentiles():
    dsl = (
        QueryBuilder(index="people")
        .aggregate(
            lambda b: b.range("age_groups", "age", [{"to": 18}, {"from": 18}])
            .histogram("age_hist", "age", 10)
            .percentiles("age_pct", "age", [50, 99])
        )
        .to_dsl()
    )
    assert dsl["aggs"] == {
        "age_groups": {"range": {"field": "age", "ranges": [{"to": 18}, {"from": 18}]}},
        "age_hist": {"histogram": {"field": "age", "interval": 10}},
        "age_pct": {"percentiles": {"field": "age", "percents": [50, 99]}},
    }


@pytest.mark.parametrize(
    "register",
    [
        lambda b: b.average("", "age"),
        lambda b: b.terms("by", ""),
        lambda b: b.histogram("h", "age", 0),
        lambda b: b.range("r", "age", []),
        lambda b: b.avg_bucket("p", ""),
    ],
    ids=["empty name", "empty field", "zero interval", "no ranges", "empty buckets_path"],
)
def test_invalid_registrations_fail(register):
    with pytest.raises(InvalidAggregationError):
        register(AggregationBuilder(AggregationState().roots))


def test_compiled_params_are_detached_from_state():
    order = {"_count": "desc"}
    builder = QueryBuilder(index="people").aggregate(lambda b: b.terms("by_city", "city", {"order": order}))
    compiled = builder.to_dsl()
    compiled["aggs"]["by_city"]["terms"]["order"]["_count"] = "asc"
    assert builder.to_dsl()["aggs"]["by_city"]["terms"]["order"] == {"_count": "desc"}
