from datetime import datetime, timezone

import pytest

from recommender_core.domain.catalog import Coordinates, EntityKind
from recommender_core.domain.recommendation import Accumulator, Intent, ScoredEntity
from recommender_core.ranking.aggregator import ResponseAggregator, rank, score_entities

from .fakes import USER_LAT, USER_LON, make_catalog, make_stores

HERE = Coordinates(USER_LAT, USER_LON)


def _acc(kind, ids):
    acc = Accumulator()
    acc.merge(kind, ids)
    return acc


def test_scores_without_location_are_relevance_only():
    scored = score_entities(make_stores().values())
    assert {s.combined_score for s in scored} == {1.0}
    assert all(s.distance_km is None for s in scored)


def test_scores_with_location_filter_radius_and_missing_coordinates():
    stores = make_stores()
    scored = score_entities([stores[9], stores[2], stores[5], stores[1]], HERE, 10)
    assert [s.entity.id for s in scored] == [2, 1]
    assert scored[0].distance_km == pytest.approx(4.0, abs=0.01)


def test_default_radius_applies_when_only_coordinates_given():
    stores = make_stores()
    scored = score_entities([stores[1], stores[2]], HERE, None)
    assert [s.entity.id for s in scored] == [1, 2]
    scored = score_entities([stores[9]], HERE, None)
    assert scored == []


def test_rank_is_stable_and_descending():
    stores = make_stores()
    scored = [
        ScoredEntity(stores[1], None, 0.5),
        ScoredEntity(stores[2], None, 0.9),
        ScoredEntity(stores[5], None, 0.5),
        ScoredEntity(stores[9], None, 0.9),
    ]
    assert [s.entity.id for s in rank(scored, 3)] == [2, 9, 1]


def test_build_stores_nearest_first():
    agg = ResponseAggregator(make_catalog())
    res = agg.build("ok", Intent.STORE, _acc(EntityKind.STORE, [9, 2, 1]), 10, HERE, 10)
    assert [s.id for s in res.stores] == [1, 2]
    assert res.stores[0].distance == pytest.approx(2.0, abs=0.01)
    assert res.stores[0].city == "Cebu"


def test_build_drops_records_of_unlisted_stores():
    agg = ResponseAggregator(make_catalog())
    res = agg.build("ok", Intent.PRODUCT, _acc(EntityKind.PRODUCT, [104, 103]), 10)
    assert [p.id for p in res.products] == [103]
    assert res.products[0].price == "19.00"
    assert res.products[0].store_id == 2


def test_build_truncates_to_max_results():
    agg = ResponseAggregator(make_catalog())
    res = agg.build("ok", Intent.PRODUCT, _acc(EntityKind.PRODUCT, [101, 102, 103, 105]), 2)
    assert [p.id for p in res.products] == [101, 102]


def test_build_promotions_keep_collection_order():
    agg = ResponseAggregator(make_catalog())
    res = agg.build("deals", Intent.PROMOTION, _acc(EntityKind.PROMOTION, [203, 201]), 5, HERE, 5)
    assert [p.id for p in res.promotions] == [203, 201]
    assert res.promotions[1].starts_at == datetime(2026, 5, 1, tzinfo=timezone.utc)
    assert res.promotions[1].product_id == 101
    assert res.products is None and res.stores is None


def test_build_only_resolves_the_intent_kind():
    acc = _acc(EntityKind.PRODUCT, [101])
    acc.merge(EntityKind.STORE, [1])
    res = ResponseAggregator(make_catalog()).build("ok", Intent.STORE, acc, 3)
    assert [s.id for s in res.stores] == [1]
    assert res.products is None


def test_build_chat_has_text_only():
    res = ResponseAggregator(make_catalog()).build("hi", Intent.CHAT, _acc(EntityKind.PRODUCT, [101]), 3)
    assert res.text == "hi"
    assert res.products is None and res.stores is None and res.promotions is None
