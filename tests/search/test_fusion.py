from datetime import timedelta

import pytest

from rolo.contacts.models import Organization, VectorHit
from rolo.search.fusion import (
    dedupe,
    fuse,
    is_duplicate,
    name_similarity,
    normalize_scores,
    recency_boost,
)
from rolo.search.types import EntityType, FusionConfig, ResultSource, SearchResult
from tests.conftest import NOW, make_person


def person(person_id: int, name: str, score: float, source=ResultSource.BASIC, **kwargs) -> SearchResult:
    return SearchResult(
        id=f"person_{person_id}",
        entity_type=EntityType.PERSON,
        payload=make_person(person_id, name, **kwargs),
        score=score,
        source=source,
    )


def interaction(hit_id: str, score: float) -> SearchResult:
    return SearchResult(
        id=f"interaction_{hit_id}",
        entity_type=EntityType.INTERACTION,
        payload=VectorHit(id=hit_id, content=f"note {hit_id}", similarity=score),
        score=score,
        source=ResultSource.SEMANTIC,
    )


class TestNormalize:
    def test_min_max(self):
        normalized = normalize_scores([interaction("a", 0.2), interaction("b", 0.6), interaction("c", 1.0)])
        assert [r.normalized_score for r in normalized] == pytest.approx([0.0, 0.5, 1.0])

    def test_single_element_uses_unit_range(self):
        normalized = normalize_scores([interaction("a", 0.7)])
        assert normalized[0].normalized_score == 0.0

    def test_all_equal(self):
        normalized = normalize_scores([interaction("a", 1.0), interaction("b", 1.0)])
        assert [r.normalized_score for r in normalized] == [0.0, 0.0]

    def test_empty(self):
        assert normalize_scores([]) == []

    def test_inputs_untouched(self):
        original = interaction("a", 0.4)
        normalize_scores([original, interaction("b", 0.8)])
        assert original.normalized_score is None


class TestNameSimilarity:
    def test_edit_distance_ratio(self):
        assert name_similarity("kitten", "sitting") == pytest.approx(4 / 7)
        assert name_similarity("", "abc") == 0.0
        assert name_similarity("same", "same") == 1.0

    def test_trailing_space_is_close(self):
        assert name_similarity("Felix", "Felix ") == pytest.approx(5 / 6)

    def test_case_insensitive(self):
        assert name_similarity("FELIX", "felix") == 1.0


class TestDuplicates:
    def test_same_key(self):
        assert is_duplicate(person(1, "Felix", 1.0), person(1, "Someone", 0.2), 0.8)

    def test_near_name_above_threshold(self):
        assert is_duplicate(person(1, "Felix", 1.0), person(2, "Felix ", 1.0), 0.8)

    def test_different_names(self):
        assert not is_duplicate(person(1, "Felix", 1.0), person(2, "Sarah", 1.0), 0.8)

    def test_cross_type_never_duplicate(self):
        org = SearchResult(
            id="org_1",
            entity_type=EntityType.ORGANIZATION,
            payload=Organization(id=1, name="Felix"),
            score=1.0,
            source=ResultSource.BASIC,
        )
        assert not is_duplicate(person(1, "Felix", 1.0), org, 0.0)

    def test_equal_names_match_at_full_threshold(self):
        assert is_duplicate(person(1, "Felix", 1.0), person(2, "felix", 1.0), 1.0)

    def test_nameless_results_never_near_match(self):
        assert not is_duplicate(interaction("a", 0.5), interaction("b", 0.5), 0.0)

    def test_dedupe_keeps_first(self):
        kept = dedupe([person(1, "Felix", 1.0), person(2, "Felix ", 0.5), person(3, "Sarah", 0.1)], 0.8)
        assert [r.id for r in kept] == ["person_1", "person_3"]


class TestFuse:
    def test_empty(self):
        assert fuse([], []) == []

    def test_bounded_and_unique(self):
        basic = [person(i, f"Person {chr(65 + i)}{i}", float(i)) for i in range(30)]
        semantic = [interaction(str(i), i / 40) for i in range(40)] + [interaction("0", 0.9)]
        config = FusionConfig(max_results=25)

        fused = fuse(basic, semantic, config, now=NOW)

        assert len(fused) <= 25
        keys = [r.key for r in fused]
        assert len(keys) == len(set(keys))

    def test_single_source_order_matches_normalized_weighting(self):
        semantic = [interaction("a", 0.3), interaction("b", 0.9), interaction("c", 0.6)]
        fused = fuse([], semantic, FusionConfig(), now=NOW)
        assert [r.id for r in fused] == ["interaction_b", "interaction_c", "interaction_a"]
        assert fused[0].rank == pytest.approx(1.0 * 0.4)

    def test_felix_near_duplicate_single_survivor(self):
        fused = fuse([person(1, "Felix", 1.0)], [person(2, "Felix ", 0.9, source=ResultSource.SEMANTIC)], now=NOW)
        assert [r.id for r in fused] == ["person_1"]

    def test_stale_person_without_role_gets_no_boost(self):
        stale = person(1, "Felix", 2.0, latest=NOW - timedelta(days=400))
        other = person(2, "Sarah", 1.0)
        fused = fuse([stale, other], [], FusionConfig(), now=NOW)

        felix = next(r for r in fused if r.id == "person_1")
        assert felix.rank == felix.normalized_score * 0.6

    def test_recent_current_role_boosts(self):
        fresh = person(1, "Felix", 1.0, org="Think", latest=NOW)
        plain = person(2, "Sarah", 1.0)
        semantic_top = interaction("x", 1.0)
        fused = fuse([fresh, plain, person(3, "Low", 0.0)], [semantic_top, interaction("y", 0.0)], now=NOW)

        felix = next(r for r in fused if r.id == "person_1")
        assert felix.rank == pytest.approx(1.0 * 0.6 * 1.2 * 1.1)
        assert fused[0].id == "person_1"

    def test_hybrid_source_weight(self):
        hybrid = SearchResult(
            id="interaction_h",
            entity_type=EntityType.INTERACTION,
            payload=None,
            score=1.0,
            source=ResultSource.HYBRID,
        )
        fused = fuse([hybrid, interaction("low", 0.0)], [], FusionConfig(basic_weight=0.6, semantic_weight=0.4))
        assert fused[0].rank == pytest.approx(1.1 * 0.5)

    def test_stable_for_ties(self):
        basic = [person(1, "Alpha", 1.0), person(2, "Bravo", 1.0), person(3, "Charlie", 1.0)]
        fused = fuse(basic, [], now=NOW)
        assert [r.id for r in fused] == ["person_1", "person_2", "person_3"]

    def test_config_is_not_mutated(self):
        config = FusionConfig()
        fuse([person(1, "Felix", 1.0)], [interaction("a", 0.5)], config, now=NOW)
        assert config == FusionConfig()

    def test_naive_now_is_treated_as_utc(self):
        fresh = person(1, "Felix", 1.0, org="Think", latest=NOW)
        aware = fuse([fresh, person(2, "Sarah", 0.0)], [], now=NOW)
        naive = fuse([fresh, person(2, "Sarah", 0.0)], [], now=NOW.replace(tzinfo=None))
        assert [r.rank for r in naive] == pytest.approx([r.rank for r in aware])


class TestRecencyBoost:
    def test_future_dates_are_clamped(self):
        assert recency_boost(make_person(1, "F", latest=NOW + timedelta(days=30)), NOW) == pytest.approx(1.2)

    def test_no_interaction(self):
        assert recency_boost(make_person(1, "F"), NOW) == 1.0

    def test_half_year(self):
        boost = recency_boost(make_person(1, "F", latest=NOW - timedelta(days=182.5)), NOW)
        assert boost == pytest.approx(1.1)


class TestFusionConfig:
    def test_merged_overrides(self):
        merged = FusionConfig().merged(basic_weight=0.9, semantic_weight=None)
        assert merged.basic_weight == 0.9
        assert merged.semantic_weight == 0.4

    def test_merged_rejects_unknown(self):
        with pytest.raises(ValueError):
            FusionConfig().merged(weight=1.0)

    def test_validation(self):
        with pytest.raises(ValueError):
            FusionConfig(basic_weight=1.5)
        with pytest.raises(ValueError):
            FusionConfig(max_results=0)
