from careertrack.analytics.analytics_schema import (
    ApplicationAnalytics,
    FunnelMetrics,
    OutcomeRate,
    PlatformMetrics,
    RoleMetrics,
    TimeInStatusMetrics,
)
from careertrack.analytics.insight_schema import CareerInsight
from careertrack.analytics.insight_service import InsightService, generate_insights, select_for_display
from careertrack.core.models import ApplicationStatus

S = ApplicationStatus


def _funnel(*pairs) -> list:
    stages = [S.APPLIED, S.OA, S.INTERVIEW, S.OFFER, S.ACCEPTED]
    return [FunnelMetrics(stage=s, count=c, percentage=p) for s, (c, p) in zip(stages, pairs)]


def _ids(insights) -> list:
    return [i.id for i in insights]


def test_no_applications_means_no_insights() -> None:
    assert generate_insights(ApplicationAnalytics()) == []


def test_platform_best_and_worst() -> None:
    analytics = ApplicationAnalytics(
        total_applications=7,
        platform_metrics=[
            PlatformMetrics(platform="LinkedIn", total=4, reached_interview=2, interview_rate=50),
            PlatformMetrics(platform="Indeed", total=3, reached_interview=0, interview_rate=0),
        ],
    )
    insights = InsightService().generate(analytics)
    by_id = {i.id: i for i in insights}

    assert by_id["platform_best"].type == "positive"
    assert by_id["platform_best"].message == "LinkedIn is your best platform with 50% interview rate."
    assert by_id["platform_worst"].type == "warning"
    assert "Indeed has 0% interview rate from 3 applications" in by_id["platform_worst"].message


def test_platform_rules_need_two_qualifying_platforms() -> None:
    analytics = ApplicationAnalytics(
        total_applications=5,
        platform_metrics=[
            PlatformMetrics(platform="LinkedIn", total=4, reached_interview=4, interview_rate=100),
            PlatformMetrics(platform="Indeed", total=1, reached_interview=0, interview_rate=0),
        ],
    )
    assert not any(i.category == "platform" for i in InsightService().generate(analytics))


def test_only_first_dropoff_is_reported() -> None:
    analytics = ApplicationAnalytics(
        total_applications=10,
        conversion_funnel=_funnel((10, 100), (5, 50), (0, 0), (0, 0), (0, 0)),
    )
    insights = InsightService().generate(analytics)
    dropoffs = [i for i in insights if i.id.startswith("dropoff_")]

    assert _ids(dropoffs) == ["dropoff_oa"]
    assert dropoffs[0].message == "50% drop-off from Applied to OA. This is your biggest conversion gap."


def test_conversion_rates_between_stages() -> None:
    analytics = ApplicationAnalytics(
        total_applications=10,
        conversion_funnel=_funnel((10, 100), (8, 80), (5, 50), (2, 20), (1, 10)),
        outcome_rate=OutcomeRate(accepted=10, rejected=70, pending=20, accepted_count=1, rejected_count=7),
    )
    ids = _ids(InsightService().generate(analytics))

    assert "oa_conversion_good" in ids  # 5/8 = 63%
    assert "interview_to_offer_good" in ids  # 2/5 = 40%
    assert "high_rejection" in ids
    assert "acceptance_rate" in ids


def test_acceptance_message_uses_singular() -> None:
    analytics = ApplicationAnalytics(
        total_applications=3,
        conversion_funnel=_funnel((3, 100), (1, 33), (1, 33), (1, 33), (1, 33)),
        outcome_rate=OutcomeRate(accepted=33, pending=67, accepted_count=1, pending_count=2),
    )
    by_id = {i.id: i for i in InsightService().generate(analytics)}
    assert by_id["acceptance_rate"].message == "33% overall acceptance rate with 1 offer accepted!"


def test_timeline_rules() -> None:
    analytics = ApplicationAnalytics(
        total_applications=6,
        response_rate=60,
        avg_time_to_response=5,
        time_in_status=[
            TimeInStatusMetrics(status=S.APPLIED, avg_days=16.6, min_days=10, max_days=20, count=3),
            TimeInStatusMetrics(status=S.INTERVIEW, avg_days=9.5, min_days=4, max_days=15, count=2),
        ],
    )
    by_id = {i.id: i for i in InsightService().generate(analytics)}

    assert by_id["response_rate_good"].value == "60%"
    assert by_id["response_time_fast"].value == "5 days"
    assert by_id["applied_long_wait"].value == "17 days"
    assert by_id["interview_duration"].message == "Interview processes take ~10 days on average for you."


def test_response_rate_needs_five_applications() -> None:
    analytics = ApplicationAnalytics(total_applications=4, response_rate=10, avg_time_to_response=30)
    ids = _ids(InsightService().generate(analytics))
    assert "response_rate_low" not in ids
    assert "response_time_slow" in ids


def test_role_rules_and_general_focus() -> None:
    analytics = ApplicationAnalytics(
        total_applications=6,
        role_metrics=[
            RoleMetrics(role="SWE", total=6, reached_interview=0, accepted=0),
        ],
    )
    ids = _ids(InsightService().generate(analytics))
    assert "role_low_success" in ids
    assert "role_focused" in ids
    assert "role_best_conversion" not in ids


def test_general_volume_and_diversity() -> None:
    analytics = ApplicationAnalytics(
        total_applications=20,
        platform_metrics=[PlatformMetrics(platform=p, total=1) for p in ("A", "B", "C")],
        role_metrics=[RoleMetrics(role=f"R{i}", total=1) for i in range(6)],
    )
    ids = _ids(InsightService().generate(analytics))
    assert ids[-3:] == ["platform_diversity", "role_scattered", "high_volume"]


def test_select_for_display_balances_types() -> None:
    def _mk(n: int, kind: str) -> list:
        return [CareerInsight(id=f"{kind}_{i}", type=kind, category="general", message="m") for i in range(n)]

    insights = _mk(3, "insight") + _mk(3, "warning") + _mk(3, "positive")
    picked = select_for_display(insights)

    assert _ids(picked) == ["positive_0", "positive_1", "warning_0", "warning_1", "insight_0"]
    assert len(select_for_display(insights, per_type=1)) == 3
