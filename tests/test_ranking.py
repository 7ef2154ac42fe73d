"""Tests for ranking, metrics and the placeholder set."""

import pytest
from pydantic import ValidationError

from afinidad.matching.ranking import (
    PLACEHOLDER_SIZE,
    RankingAssembler,
    diversity_key,
    placeholder_match_set,
    visible,
)
from afinidad.models import (
    Commonality,
    CommonalityCategory,
    Match,
    MatchSet,
    MatchType,
    Profile,
    ResponseSet,
    ScoringMode,
)


def make_match(index: int, score: float, passed: bool = False, category=CommonalityCategory.PROFESSIONAL) -> Match:
    profile = Profile(id=f"cand-{index}", name=f"Person {index}")
    return Match(
        id=f"match-{index}",
        user_id="user-1",
        matched_user_id=profile.id,
        matched_profile=profile,
        type=MatchType.HIGH_AFFINITY if score > 0.8 else MatchType.STRATEGIC,
        commonalities=[Commonality(category=category, description="Shared thing", weight=0.7)],
        score=score,
        passed=passed,
    )


class TestRankingAssembler:
    """Test ordering and aggregates."""

    def test_sorted_descending_with_stable_ties(self):
        matches = [make_match(1, 0.7), make_match(2, 0.9), make_match(3, 0.7), make_match(4, 0.85)]

        match_set = RankingAssembler().assemble("user-1", matches)

        assert match_set.ids == ["match-2", "match-4", "match-1", "match-3"]

    def test_metrics(self):
        matches = [
            make_match(1, 0.9),
            make_match(2, 0.6, category=CommonalityCategory.HOBBY),
        ]

        metrics = RankingAssembler().assemble("user-1", matches).metrics

        assert metrics.count == 2
        assert metrics.average_score == pytest.approx(0.75)
        assert metrics.high_affinity_count == 1
        assert metrics.strategic_count == 1
        assert metrics.category_distribution == {"professional": 1, "hobby": 1}

    def test_cap_applies_to_visible_matches_only(self):
        matches = [make_match(1, 0.95, passed=True), make_match(2, 0.9), make_match(3, 0.8), make_match(4, 0.7)]

        match_set = RankingAssembler(max_matches=2).assemble("user-1", matches)

        assert match_set.ids == ["match-1", "match-2", "match-3"]
        assert match_set.metrics.count == 2

    def test_cap_prefers_distinct_industry_and_level(self):
        matches = [make_match(1, 0.9), make_match(2, 0.85), make_match(3, 0.8), make_match(4, 0.6)]
        keys = {
            "cand-1": ("technology", "vp"),
            "cand-2": ("technology", "vp"),
            "cand-3": ("technology", "vp"),
            "cand-4": ("finance", "c-level"),
        }

        diverse = RankingAssembler(max_matches=2).assemble("user-1", matches, diversity_keys=keys)
        by_score = RankingAssembler(max_matches=2).assemble("user-1", matches)

        assert diverse.ids == ["match-1", "match-4"]
        assert by_score.ids == ["match-1", "match-2"]

    def test_diverse_cap_fills_remaining_by_score_and_stays_sorted(self):
        matches = [make_match(1, 0.6), make_match(2, 0.9), make_match(3, 0.85), make_match(4, 0.7)]
        keys = {
            "cand-1": ("finance", "vp"),
            "cand-2": ("technology", "vp"),
            "cand-3": ("technology", "vp"),
            "cand-4": ("technology", "vp"),
        }

        match_set = RankingAssembler(max_matches=3).assemble("user-1", matches, diversity_keys=keys)

        assert match_set.ids == ["match-2", "match-3", "match-1"]
        assert match_set.metrics.count == 3

    def test_diversity_key_from_responses(self):
        responses = ResponseSet(
            user_id="cand-1", answers={"industry": "Technology ", "leadershipLevel": "VP"}
        )

        assert diversity_key(responses) == (("technology",), ("vp",))
        assert diversity_key(None) == ((), ())

    def test_visible_filters_passed(self):
        matches = [make_match(1, 0.9, passed=True), make_match(2, 0.7)]
        match_set = RankingAssembler().assemble("user-1", matches)

        view = visible(match_set)

        assert view.ids == ["match-2"]
        assert view.metrics.count == 1
        assert match_set.ids == ["match-1", "match-2"]

    def test_unsorted_match_set_rejected(self):
        with pytest.raises(ValidationError):
            MatchSet(user_id="user-1", matches=[make_match(1, 0.5), make_match(2, 0.9)])

    def test_self_match_rejected(self):
        profile = Profile(id="user-1", name="Ana")
        with pytest.raises(ValidationError):
            Match(
                id="m",
                user_id="user-1",
                matched_user_id="user-1",
                matched_profile=profile,
                type=MatchType.STRATEGIC,
                commonalities=[
                    Commonality(category=CommonalityCategory.VALUES, description="x", weight=0.5)
                ],
                score=0.5,
            )


class TestPlaceholder:
    """Test the cold start set."""

    def test_placeholder_ids_use_reserved_prefix(self):
        match_set = placeholder_match_set("user-1")

        assert match_set.is_placeholder
        assert len(match_set.matches) == PLACEHOLDER_SIZE
        for match in match_set.matches:
            assert match.id.startswith("demo-match-")
            assert match.matched_user_id.startswith("demo-user-")
            assert match.scoring_mode == ScoringMode.PLACEHOLDER
            assert match.commonalities
            assert len(match.conversation_starters) <= 2
        scores = [m.score for m in match_set.matches]
        assert scores == sorted(scores, reverse=True)

    def test_placeholder_is_deterministic(self):
        first = placeholder_match_set("user-1")
        second = placeholder_match_set("user-1")
        assert first.ids == second.ids
        assert [m.score for m in first.matches] == [m.score for m in second.matches]
