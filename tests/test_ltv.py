"""Unit tests for cohort_analytics.ltv and cohort_analytics.insights."""

from datetime import datetime, timezone

import pytest

from cohort_analytics.insights import (
    OPPORTUNITY,
    POSITIVE,
    WARNING,
    generate_insights,
    opportunity_insight,
    trend_insight,
)
from cohort_analytics.ltv import (
    CohortLTV,
    LTVProfile,
    OverallLTV,
    build_profiles,
    overall_ltv,
    percentile_cont,
    rollup_cohorts,
)
from cohort_analytics.records import PurchaseRecord, UserRecord

NOW = datetime(2025, 6, 15, 12, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


def profile(uid, spent, purchases=1, lifespan=100, registered=utc(2025, 1, 1)):
    return LTVProfile(uid, registered, purchases, spent, lifespan)


def cohort_entry(month, avg_ltv):
    return CohortLTV(month, 1, avg_ltv, avg_ltv, 0.0, 0.0, 0.0, 0.0)


def overall_from(values):
    return overall_ltv([profile(f"u{i}", v) for i, v in enumerate(values)])


class TestPercentile:
    """Tests for percentile_cont."""

    def test_median_and_p90(self):
        """Test the worked example: median 50 and p90 160."""
        values = [200, 0, 100, 50, 0]
        assert percentile_cont(values, 0.5) == 50
        assert percentile_cont(values, 0.9) == 160

    def test_interpolation_is_exact(self):
        """Test p90 of [0,0,0,0,1000] is exactly 600."""
        assert percentile_cont([0, 0, 0, 0, 1000], 0.9) == 600

    def test_even_count_median(self):
        """Test the median interpolates between the two middle values."""
        assert percentile_cont([1, 2, 3, 4], 0.5) == 2.5

    @pytest.mark.parametrize("p,expected", [(0, 3), (1, 9)])
    def test_extremes(self, p, expected):
        """Test p=0 and p=1 give min and max."""
        assert percentile_cont([9, 3, 5], p) == expected

    def test_single_value(self):
        """Test a single value is every percentile."""
        assert percentile_cont([42.5], 0.9) == 42.5

    def test_empty_is_undefined(self):
        """Test an empty input has no percentile, not zero."""
        assert percentile_cont([], 0.5) is None

    def test_fraction_out_of_range(self):
        """Test fractions outside [0, 1] are rejected."""
        with pytest.raises(ValueError):
            percentile_cont([1, 2], 1.5)


class TestProfiles:
    """Tests for build_profiles and the derived ratios."""

    @pytest.fixture
    def users(self):
        return [
            UserRecord("buyer", utc(2025, 1, 3, 9), "developer"),
            UserRecord("browser", utc(2025, 3, 1, 12), "tester"),
            UserRecord("brand_new", NOW, "tester"),
        ]

    @pytest.fixture
    def purchases(self):
        return [
            PurchaseRecord("p1", "buyer", "app_a", 100, "completed", utc(2025, 1, 20, 10)),
            PurchaseRecord("p2", "buyer", "app_b", 50, "completed", utc(2025, 2, 20, 10)),
            PurchaseRecord("p2", "buyer", "app_b", 50, "completed", utc(2025, 2, 20, 10)),
            PurchaseRecord("p3", "buyer", "app_b", 500, "refunded", utc(2025, 4, 1)),
            PurchaseRecord("p4", "browser", "app_a", 80, "pending", utc(2025, 3, 5)),
        ]

    def test_buyer(self, users, purchases):
        """Test totals and the lifespan up to the last completed purchase."""
        by_id = {p.user_id: p for p in build_profiles(users, purchases, NOW)}
        buyer = by_id["buyer"]

        assert buyer.total_purchases == 2
        assert buyer.total_spent == 150
        assert buyer.lifespan_days == 48
        assert buyer.avg_order_value == 75
        assert buyer.estimated_annual_value == pytest.approx(150 / 48 * 365)
        assert buyer.estimated_annual_frequency == pytest.approx(2 / 48 * 365)

    def test_user_without_purchases_runs_to_now(self, users, purchases):
        """Test lifespan runs to now and spend is zero without completed purchases."""
        browser = {p.user_id: p for p in build_profiles(users, purchases, NOW)}["browser"]

        assert browser.total_purchases == 0
        assert browser.total_spent == 0
        assert browser.lifespan_days == 106
        assert browser.avg_order_value == 0
        assert browser.estimated_annual_value == 0

    def test_zero_lifespan_guarded(self, users, purchases):
        """Test a zero-day lifespan yields zero projections instead of dividing."""
        new = {p.user_id: p for p in build_profiles(users, purchases, NOW)}["brand_new"]

        assert new.lifespan_days == 0
        assert new.estimated_annual_value == 0
        assert new.estimated_annual_frequency == 0

    def test_negative_lifespan_guarded(self):
        """Test a purchase dated before registration does not produce negative projections."""
        p = profile("skewed", 40, purchases=1, lifespan=-3)
        assert p.estimated_annual_value == 0
        assert p.estimated_annual_frequency == 0
        assert p.avg_order_value == 40


class TestRollups:
    """Tests for rollup_cohorts and overall_ltv."""

    def test_cohort_rollup_by_month(self):
        """Test monthly grouping, ordering and the trailing window."""
        profiles = [
            profile("a", 100, registered=utc(2025, 2, 3)),
            profile("b", 0, purchases=0, registered=utc(2025, 2, 20)),
            profile("c", 300, registered=utc(2025, 2, 27)),
            profile("d", 40, registered=utc(2025, 1, 9)),
            profile("e", 999, registered=utc(2023, 1, 9)),
        ]
        rollup = rollup_cohorts(profiles, since=utc(2024, 6, 15))

        assert [c.cohort_month for c in rollup] == ["2025-01-01", "2025-02-01"]
        feb = rollup[1]
        assert feb.cohort_size == 3
        assert feb.avg_ltv == pytest.approx(400 / 3)
        assert feb.median_ltv == 100
        assert feb.avg_lifespan_days == 100

    def test_overall_worked_example(self):
        """Test totals for spend [0, 0, 50, 100, 200]."""
        overall = overall_from([0, 0, 50, 100, 200])

        assert overall.total_users == 5
        assert overall.avg_ltv == 70
        assert overall.median_ltv == 50
        assert overall.p90_ltv == 160
        assert overall.max_ltv == 200

    def test_overall_empty(self):
        """Test an empty population keeps statistics undefined internally and 0 on output."""
        overall = overall_ltv([])

        assert overall.avg_ltv is None
        assert overall.p90_ltv is None
        assert overall.to_dict() == {
            "total_users": 0, "avg_ltv": 0.0, "median_ltv": 0.0, "p90_ltv": 0.0, "max_ltv": 0.0,
        }


class TestInsights:
    """Tests for trend and opportunity insights."""

    def test_no_opportunity_below_threshold(self):
        """Test p90 160 against mean 70 is no opportunity."""
        assert opportunity_insight(overall_from([0, 0, 50, 100, 200])) is None

    def test_no_opportunity_at_equality(self):
        """Test p90 exactly three times the mean does not qualify."""
        assert opportunity_insight(overall_from([0, 0, 0, 0, 1000])) is None

    def test_opportunity_above_threshold(self):
        """Test p90 strictly above three times the mean."""
        values = [0] * 9 + [1000, 1000]
        insight = opportunity_insight(overall_from(values))

        assert insight.type == OPPORTUNITY
        assert insight.message == "Significant opportunity in high-value user segment"
        assert insight.value == "Top 10% users have 5.5x higher LTV"

    def test_opportunity_undefined_population(self):
        """Test no users means no opportunity."""
        assert opportunity_insight(OverallLTV(0, None, None, None, None)) is None

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_trend_needs_three_cohorts(self, count):
        """Test fewer than three cohorts never yields a trend."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", 10 ** i) for i in range(count)]
        assert trend_insight(cohorts) is None

    def test_trend_upward(self):
        """Test recent cohorts above 110% of older ones."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([10, 10, 10, 20, 20, 20])]
        insight = trend_insight(cohorts)

        assert insight.type == POSITIVE
        assert insight.message == "LTV is trending upward in recent cohorts"
        assert insight.value == "100.0% increase"

    def test_trend_downward(self):
        """Test recent cohorts below 90% of older ones."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([40, 40, 40, 30, 30, 30])]
        insight = trend_insight(cohorts)

        assert insight.type == WARNING
        assert insight.value == "25.0% decrease"

    def test_trend_neutral_when_equal(self):
        """Test equal window averages yield no trend."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([10, 20, 30, 30, 10, 20])]
        assert trend_insight(cohorts) is None

    def test_trend_within_band(self):
        """Test a 5% change stays neutral."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([100, 100, 100, 105, 105, 105])]
        assert trend_insight(cohorts) is None

    def test_trend_windows_overlap(self):
        """Test four cohorts compare entries 2-4 against entries 1-3."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([0, 30, 30, 60])]
        insight = trend_insight(cohorts)

        # recent (30+30+60)/3 = 40, older (0+30+30)/3 = 20
        assert insight.type == POSITIVE
        assert insight.value == "100.0% increase"

    def test_trend_from_zero(self):
        """Test growth from a zero baseline has no percentage."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([0, 0, 0, 5])]
        assert trend_insight(cohorts).value == "up from zero"

    def test_generate_insights_order(self):
        """Test trend comes before opportunity."""
        cohorts = [cohort_entry(f"2025-0{i + 1}-01", v) for i, v in enumerate([10, 10, 10, 20, 20, 20])]
        insights = generate_insights(cohorts, overall_from([0] * 9 + [1000, 1000]))

        assert [i.type for i in insights] == [POSITIVE, OPPORTUNITY]
