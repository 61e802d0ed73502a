"""
Unit tests for the weighted scoring engine and ranking.

Covers:
- Field weights and bonus rules
- Threshold, top-N cap and below-threshold backfill
- Ordering and idempotence of ranking
"""

import pytest

from services.prospect_matching.explanations import LOW_SCORE_PREFIX
from services.prospect_matching.profile_builder import CustomerFields, InputProfile, extract_profile
from services.prospect_matching.scoring_engine import (
    DEALER_BONUS,
    DEFAULT_WEIGHTS,
    MIN_THRESHOLD,
    ProspectMatchScorer,
    is_low_quality,
)


@pytest.fixture
def e2e_scorer(e2e_description):
    return ProspectMatchScorer(extract_profile(e2e_description))


@pytest.mark.unit
class TestScoreCustomer:
    """Scoring a single customer record."""

    def test_weights_sum_to_one(self):
        assert sum(DEFAULT_WEIGHTS.values()) == pytest.approx(1.0)

    def test_end_to_end_scenario(self, e2e_scorer, e2e_customer):
        """Transport prospect sold through dealers against a maritime dealer customer."""
        ranked = e2e_scorer.rank([e2e_customer])

        assert len(ranked) == 1
        top = ranked[0]
        assert top.company == "Noordzee Shipping BV"
        assert top.scores.sector >= 0.85
        assert top.bonus_score == pytest.approx(DEALER_BONUS)
        assert "dealer" in top.bonuses
        assert top.total_score > 0.5
        assert top.below_threshold is False

    def test_weighted_total(self, e2e_scorer, e2e_customer):
        candidate = e2e_scorer.score_customer(e2e_customer)

        assert candidate.scores.sector == 1.0
        assert candidate.scores.core_activity == 0.7
        assert candidate.scores.sales_model == 0.85
        assert candidate.scores.deal_size == 0.5
        expected = 0.35 * 1.0 + 0.30 * 0.7 + 0.08 * 0.85 + 0.02 * 0.5 + DEALER_BONUS
        assert candidate.total_score == pytest.approx(expected)
        assert candidate.local_score == candidate.total_score
        assert candidate.ai_score is None

    def test_field_scores_within_range(self, e2e_scorer, customer_pool):
        for customer in customer_pool:
            candidate = e2e_scorer.score_customer(customer)
            assert all(0.0 <= value <= 1.0 for value in candidate.scores.as_dict().values())
            assert 0.0 <= candidate.total_score <= 1.0

    def test_tender_and_engineer_bonuses(self):
        scorer = ProspectMatchScorer(InputProfile(tender_involved=True, engineer_to_order=True))
        candidate = scorer.score_customer({
            "Bedrijf": "Maatwerk Machines",
            "Sector": "Manufacturing",
            "Kernactiviteit": "machinebouw",
            "Kernproces": "Engineer-to-order projecten via tender",
        })

        assert candidate.bonuses == ("tender", "engineer_to_order")
        assert candidate.bonus_score == pytest.approx(0.22)

    def test_bonus_requires_prospect_flag(self, e2e_customer):
        scorer = ProspectMatchScorer(InputProfile(sector="transport"))
        candidate = scorer.score_customer(e2e_customer)

        assert candidate.bonuses == ()
        assert candidate.bonus_score == 0.0

    def test_total_is_clamped(self):
        profile = InputProfile(
            sector="transport",
            core_activity="shipping",
            products="cranes",
            sales_model="dealer",
            service_model="field service",
            customer_profile="ports",
            deal_size="mkb",
            dealer_driven=True,
            tender_involved=True,
            engineer_to_order=True,
        )
        customer = {
            "Bedrijf": "Perfect Match",
            "Sector": "Transport",
            "Kernactiviteit": "Shipping",
            "Producten/Diensten": "Cranes",
            "Verkoopmodel": "Dealer",
            "Servicemodel": "Field service",
            "Klantprofiel": "Ports",
            "Dealsize": "MKB",
            "Kernproces": "engineer to order via tender",
        }

        candidate = ProspectMatchScorer(profile).score_customer(customer)

        assert candidate.bonus_score == pytest.approx(0.37)
        assert candidate.total_score == 1.0

    def test_custom_field_names(self):
        fields = CustomerFields(company="Company", sector="Industry", core_activity="Activity")
        customer = {"Company": "Acme", "Industry": "Transport", "Activity": "shipping"}
        candidate = ProspectMatchScorer(InputProfile(sector="transport"), fields=fields).score_customer(customer)

        assert candidate.company == "Acme"
        assert candidate.scores.sector == 1.0


@pytest.mark.unit
class TestRanking:
    """Ranking, threshold and backfill."""

    def test_mixed_pool_is_backfilled(self, e2e_scorer, customer_pool):
        ranked = e2e_scorer.rank(customer_pool)

        assert [candidate.company for candidate in ranked] == [
            "Noordzee Shipping BV",
            "Havenkranen Holland",
            "Rijnmond Logistics",
        ]
        assert [candidate.below_threshold for candidate in ranked] == [False, False, True]
        assert ranked[2].explanation.startswith(LOW_SCORE_PREFIX)
        assert not ranked[0].explanation.startswith(LOW_SCORE_PREFIX)

    def test_backfill_when_nothing_qualifies(self, unrelated_pool):
        scorer = ProspectMatchScorer(InputProfile(sector="zzzz", core_activity="qqqq"))
        ranked = scorer.rank(unrelated_pool)

        assert len(ranked) == 3
        assert all(candidate.below_threshold for candidate in ranked)
        assert all(candidate.total_score < MIN_THRESHOLD for candidate in ranked)

    def test_backfill_small_pool(self, unrelated_pool):
        scorer = ProspectMatchScorer(InputProfile(sector="zzzz"))
        assert len(scorer.rank(unrelated_pool[:2])) == 2

    def test_empty_pool(self, e2e_scorer):
        assert e2e_scorer.rank([]) == []

    def test_top_n_cap(self):
        pool = [
            {"Bedrijf": f"Vervoer {index}", "Sector": "Transport", "Kernactiviteit": "wegvervoer"}
            for index in range(7)
        ]
        ranked = ProspectMatchScorer(InputProfile(sector="transport")).rank(pool)

        assert len(ranked) == 5
        assert not any(candidate.below_threshold for candidate in ranked)

    def test_sorted_descending(self, e2e_scorer, customer_pool):
        scores = [candidate.total_score for candidate in e2e_scorer.rank(customer_pool)]
        assert scores == sorted(scores, reverse=True)

    def test_rank_is_idempotent(self, e2e_scorer, customer_pool):
        first = [(candidate.company, candidate.total_score) for candidate in e2e_scorer.rank(customer_pool)]
        second = [(candidate.company, candidate.total_score) for candidate in e2e_scorer.rank(customer_pool)]
        assert first == second

    def test_low_quality_detection(self, e2e_scorer, customer_pool, unrelated_pool):
        assert is_low_quality(e2e_scorer.rank(customer_pool)) is False
        assert is_low_quality(e2e_scorer.rank(unrelated_pool)) is True
        assert is_low_quality([]) is False

    def test_to_dict_projection(self, e2e_scorer, e2e_customer):
        data = e2e_scorer.rank([e2e_customer])[0].to_dict(rank=1)

        assert data["rank"] == 1
        assert data["company"] == "Noordzee Shipping BV"
        assert data["score"] == "79%"
        assert data["sector"] == "Transport"
        assert data["ai_strength"] == ""
