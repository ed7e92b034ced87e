"""Tests for final ranking and reward resolution.

Tests verify:
- Ranking by total score among active participants
- Deterministic tie-breaking
- Aggregate statistics
- Expansion of reward tiers, participation and category rewards into grants
"""

import pytest

from competition_engine.models.reward import RewardType
from competition_engine.schemas.reward import RewardsConfig
from competition_engine.services.ranking_service import (
    CATEGORY_REWARD,
    PARTICIPATION_REWARD,
    TIER_REWARD,
    build_season_stats,
    rank_participants,
    resolve_reward_grants,
)


class TestRankParticipants:
    """Test final ranking."""

    def test_ranks_by_score_descending(self, make_participant):
        a = make_participant(50)
        b = make_participant(90)
        c = make_participant(10)

        rankings = rank_participants([a, b, c])

        ranks = {p.participant_id: p.final_rank for p in rankings.participants}
        assert ranks == {b.id: 1, a.id: 2, c.id: 3}
        assert rankings.average_score == 50.0
        assert rankings.top_score == 90.0
        assert rankings.total_score == 150.0

    def test_inactive_participants_are_not_ranked(self, make_participant):
        active = make_participant(40)
        left = make_participant(100, is_active=False)

        rankings = rank_participants([active, left])

        assert rankings.total_participants == 1
        assert rankings.participants[0].participant_id == active.id
        assert rankings.top_score == 40.0

    def test_ranks_are_dense_and_one_based(self, make_participant):
        participants = [make_participant(score) for score in (5, 30, 30, 12, 99, 0)]

        rankings = rank_participants(participants)

        assert [p.final_rank for p in rankings.participants] == [1, 2, 3, 4, 5, 6]

    def test_ties_broken_by_enrollment_time(self, make_participant):
        late = make_participant(75, enrolled_offset=60)
        early = make_participant(75, enrolled_offset=0)

        rankings = rank_participants([late, early])

        assert rankings.participants[0].participant_id == early.id
        assert rankings.participants[1].participant_id == late.id

    def test_ranking_is_deterministic(self, make_participant):
        participants = [make_participant(20) for _ in range(5)]

        first = rank_participants(participants)
        second = rank_participants(list(reversed(participants)))

        assert [p.participant_id for p in first.participants] == [
            p.participant_id for p in second.participants
        ]

    def test_average_rounded_to_two_decimals(self, make_participant):
        rankings = rank_participants([make_participant(10), make_participant(10), make_participant(11)])
        assert rankings.average_score == 10.33

    def test_average_rounds_halves_up(self, make_participant):
        # 0.125 would round to even (0.12) with round()
        rankings = rank_participants([make_participant(0.25), make_participant(0)])
        assert rankings.average_score == 0.13

    def test_empty_competition(self):
        rankings = rank_participants([])

        assert rankings.participants == []
        assert rankings.total_score == 0
        assert rankings.average_score == 0.0
        assert rankings.top_score == 0.0


class TestResolveRewardGrants:
    """Test tier and participation reward expansion."""

    REWARDS = RewardsConfig.model_validate(
        {
            "tiers": [
                {"place": 1, "reward": "Monthly Champion Trophy", "type": "trophy", "value": 500},
                {"place": 2, "reward": "Monthly Silver Medal", "type": "medal", "value": 300},
                {"place": [4, 10], "reward": "Top 10 Badge", "type": "badge", "value": 100},
            ],
            "participation": {"reward": "Monthly Participant", "type": "badge", "value": 50},
        }
    )

    def test_range_tier_only_reaches_existing_ranks(self, make_participant):
        participants = [make_participant(score) for score in (60, 50, 40, 30, 20, 10)]
        rankings = rank_participants(participants)

        grants = resolve_reward_grants(self.REWARDS, rankings, "March 2025 Championship")

        top10 = [g for g in grants if g.reward_name == "Top 10 Badge"]
        assert [g.rank for g in top10] == [4, 5, 6]

    def test_every_active_participant_gets_participation(self, make_participant):
        participants = [make_participant(score) for score in (60, 50, 40)]
        participants.append(make_participant(99, is_active=False))
        rankings = rank_participants(participants)

        grants = resolve_reward_grants(self.REWARDS, rankings, "Cup")

        participation = [g for g in grants if g.source == PARTICIPATION_REWARD]
        assert len(participation) == 3
        assert {g.user_id for g in participation} == {p.user_id for p in rankings.participants}

    def test_winner_receives_tier_and_participation(self, make_participant):
        winner = make_participant(100)
        rankings = rank_participants([winner, make_participant(1)])

        grants = resolve_reward_grants(self.REWARDS, rankings, "Cup")

        winner_grants = [g for g in grants if g.user_id == winner.user_id]
        assert [g.reward_name for g in winner_grants] == [
            "Monthly Champion Trophy",
            "Monthly Participant",
        ]

    def test_grant_fields_and_reasons(self, make_participant):
        rankings = rank_participants([make_participant(10)])

        grants = resolve_reward_grants(self.REWARDS, rankings, "March 2025 Championship")

        tier, participation = grants
        assert tier.reward_type == RewardType.TROPHY
        assert tier.reward_value == 500
        assert tier.reason == "March 2025 Championship - Place 1"
        assert tier.source == TIER_REWARD
        assert participation.reason == "March 2025 Championship - Participation"

    def test_no_participants_no_grants(self):
        assert resolve_reward_grants(self.REWARDS, rank_participants([]), "Cup") == []

    def test_empty_config_no_grants(self, make_participant):
        rankings = rank_participants([make_participant(10)])
        assert resolve_reward_grants(RewardsConfig(), rankings, "Cup") == []


class TestCategoryRewards:
    """Test category champion and participation minimum handling."""

    @staticmethod
    def scored(make_participant, total, **category_scores):
        participant = make_participant(total)
        participant.category_scores = category_scores
        return participant

    def test_top_performers_of_a_category(self, make_participant):
        first = self.scored(make_participant, 90, BIGGEST_CATCH=20)
        second = self.scored(make_participant, 50, BIGGEST_CATCH=80)
        third = self.scored(make_participant, 10, BIGGEST_CATCH=40)
        rankings = rank_participants([first, second, third])
        rewards = RewardsConfig.model_validate(
            {
                "categories": [
                    {
                        "category": "BIGGEST_CATCH",
                        "top_performers": 2,
                        "reward": "Big Fish",
                        "type": "badge",
                        "value": 75,
                    }
                ]
            }
        )

        grants = resolve_reward_grants(rewards, rankings, "Cup")

        assert [g.user_id for g in grants] == [second.user_id, third.user_id]
        assert [g.reason for g in grants] == [
            "BIGGEST_CATCH Champion - Position 1",
            "BIGGEST_CATCH Champion - Position 2",
        ]
        assert grants[0].reward_name == "Big Fish - BIGGEST_CATCH"
        assert grants[0].source == CATEGORY_REWARD
        assert grants[0].reward_value == 75
        # The grant keeps the overall final rank
        assert grants[0].rank == 2

    def test_zero_category_scores_are_not_rewarded(self, make_participant):
        scorer = self.scored(make_participant, 10, MOST_ACTIVE=5)
        idle = self.scored(make_participant, 20, MOST_ACTIVE=0)
        absent = make_participant(30)
        rankings = rank_participants([scorer, idle, absent])
        rewards = RewardsConfig.model_validate(
            {
                "categories": [
                    {
                        "category": "MOST_ACTIVE",
                        "top_performers": 3,
                        "reward": "Busy Bee",
                        "type": "title",
                    }
                ]
            }
        )

        grants = resolve_reward_grants(rewards, rankings, "Cup")

        assert [g.user_id for g in grants] == [scorer.user_id]

    def test_category_grants_follow_participation(self, make_participant):
        player = self.scored(make_participant, 10, MOST_ACTIVE=5)
        rewards = RewardsConfig.model_validate(
            {
                "participation": {"reward": "Finisher", "type": "badge", "value": 10},
                "categories": [
                    {"category": "MOST_ACTIVE", "reward": "Busy Bee", "type": "badge"}
                ],
            }
        )

        grants = resolve_reward_grants(rewards, rank_participants([player]), "Cup")

        assert [g.source for g in grants] == [PARTICIPATION_REWARD, CATEGORY_REWARD]

    def test_active_participants_meet_any_minimum(self, make_participant):
        rankings = rank_participants([make_participant(10), make_participant(0)])
        rewards = RewardsConfig.model_validate(
            {
                "participation": {
                    "reward": "Finisher",
                    "type": "badge",
                    "value": 10,
                    "minimum_participation": 100,
                }
            }
        )

        grants = resolve_reward_grants(rewards, rankings, "Cup")

        assert len(grants) == 2


class TestSeasonStats:
    def test_completion_rate_is_active_share(self, make_participant):
        participants = [make_participant(10), make_participant(20), make_participant(30, is_active=False)]
        rankings = rank_participants(participants)

        stats = build_season_stats(len(participants), rankings)

        assert stats["total_participants"] == 3
        assert stats["active_participants"] == 2
        assert stats["completion_rate"] == pytest.approx(2 / 3)
        assert stats["top_score"] == 20.0

    def test_completion_rate_zero_without_participants(self):
        stats = build_season_stats(0, rank_participants([]))
        assert stats["completion_rate"] == 0.0
        assert stats["average_score"] == 0.0

    def test_total_score_rounds_halves_up(self, make_participant):
        rankings = rank_participants([make_participant(10.25), make_participant(12.25)])

        stats = build_season_stats(2, rankings)

        # 22.5 would round to even (22) with round()
        assert stats["total_score"] == 23
        assert rankings.total_score == 22.5
