from __future__ import annotations

import logging
from typing import List, Optional

from careertrack.analytics.analytics_schema import ApplicationAnalytics, FunnelMetrics, TimeInStatusMetrics
from careertrack.analytics.analytics_service import percent, round_half_up
from careertrack.analytics.insight_schema import CareerInsight
from careertrack.core.models import ApplicationStatus

log = logging.getLogger("analytics.insights")

S = ApplicationStatus


def _plural(word: str, n: int) -> str:
    return word if n == 1 else f"{word}s"


def _stage(funnel: List[FunnelMetrics], stage: ApplicationStatus) -> Optional[FunnelMetrics]:
    return next((f for f in funnel if f.stage == stage), None)


def _timing(rows: List[TimeInStatusMetrics], status: ApplicationStatus) -> Optional[TimeInStatusMetrics]:
    return next((t for t in rows if t.status == status), None)


class InsightService:
    """
    Description: Threshold rules over an analytics snapshot. Rules run in a fixed
    group order (platform, role, timeline, conversion, general) and each emits
    at most one insight per id.
    Layer: L9
    Input: ApplicationAnalytics
    Output: List[CareerInsight] (empty when no applications are tracked)
    """

    def generate(self, analytics: ApplicationAnalytics) -> List[CareerInsight]:
        if analytics.total_applications == 0:
            return []

        out: List[CareerInsight] = []
        self._platform(analytics, out)
        self._role(analytics, out)
        self._timeline(analytics, out)
        self._conversion(analytics, out)
        self._general(analytics, out)
        log.debug("Generated %d insights", len(out))
        return out

    # ── platform ─────────────────────────────────────────────────────────────

    @staticmethod
    def _platform(analytics: ApplicationAnalytics, out: List[CareerInsight]) -> None:
        qualifying = [p for p in analytics.platform_metrics if p.total >= 2]
        if len(qualifying) < 2:
            return

        by_interview = sorted(qualifying, key=lambda p: -p.interview_rate)
        best, worst = by_interview[0], by_interview[-1]

        if best.interview_rate > 0 and best.interview_rate >= worst.interview_rate + 15:
            out.append(
                CareerInsight(
                    id="platform_best",
                    type="positive",
                    category="platform",
                    message=f"{best.platform} is your best platform with {best.interview_rate}% interview rate.",
                    value=f"{best.interview_rate}%",
                )
            )

        if worst.total >= 3 and worst.interview_rate == 0:
            out.append(
                CareerInsight(
                    id="platform_worst",
                    type="warning",
                    category="platform",
                    message=(
                        f"{worst.platform} has 0% interview rate from {worst.total} applications. "
                        "Consider focusing elsewhere."
                    ),
                    value="0%",
                )
            )

        best_offer = sorted(qualifying, key=lambda p: -p.offer_rate)[0]
        if best_offer.offer_rate > 0 and best_offer.reached_offer >= 2:
            n = best_offer.reached_offer
            out.append(
                CareerInsight(
                    id="platform_offers",
                    type="positive",
                    category="platform",
                    message=(
                        f"{best_offer.platform} has led to {n} {_plural('offer', n)} "
                        f"({best_offer.offer_rate}% rate)."
                    ),
                    value=f"{best_offer.offer_rate}%",
                )
            )

    # ── role ─────────────────────────────────────────────────────────────────

    @staticmethod
    def _role(analytics: ApplicationAnalytics, out: List[CareerInsight]) -> None:
        qualifying = [r for r in analytics.role_metrics if r.total >= 2]
        if not qualifying:
            return

        best_conv = sorted(qualifying, key=lambda r: -r.conversion_rate)[0]
        if best_conv.conversion_rate > 0:
            out.append(
                CareerInsight(
                    id="role_best_conversion",
                    type="positive",
                    category="role",
                    message=f"{best_conv.role} roles have your best conversion rate at {best_conv.conversion_rate}%.",
                    value=f"{best_conv.conversion_rate}%",
                )
            )

        # Raw ratio for ordering; the rounded rate is what gets reported.
        best_int = sorted(qualifying, key=lambda r: -(r.reached_interview / r.total))[0]
        rate = percent(best_int.reached_interview, best_int.total)
        if rate >= 30:
            out.append(
                CareerInsight(
                    id="role_high_interview",
                    type="positive",
                    category="role",
                    message=(
                        f"{best_int.role} roles get you {rate}% interview rate. "
                        "This aligns well with your profile."
                    ),
                    value=f"{rate}%",
                )
            )

        low = next((r for r in qualifying if r.total >= 5 and r.reached_interview == 0), None)
        if low is not None:
            out.append(
                CareerInsight(
                    id="role_low_success",
                    type="warning",
                    category="role",
                    message=(
                        f"{low.role} has {low.total} applications but no interviews. "
                        "Consider revising your approach."
                    ),
                    value="0 interviews",
                )
            )

    # ── timeline ─────────────────────────────────────────────────────────────

    @staticmethod
    def _timeline(analytics: ApplicationAnalytics, out: List[CareerInsight]) -> None:
        total = analytics.total_applications
        rr = analytics.response_rate
        avg = analytics.avg_time_to_response

        if total >= 5:
            if rr >= 50:
                out.append(
                    CareerInsight(
                        id="response_rate_good",
                        type="positive",
                        category="timeline",
                        message=f"{rr}% of your applications received responses. You're getting noticed!",
                        value=f"{rr}%",
                    )
                )
            elif rr < 20:
                out.append(
                    CareerInsight(
                        id="response_rate_low",
                        type="warning",
                        category="timeline",
                        message=(
                            f"Only {rr}% response rate. "
                            "Consider improving resume or targeting different roles."
                        ),
                        value=f"{rr}%",
                    )
                )

        if avg > 0 and total >= 3:
            if avg <= 7:
                out.append(
                    CareerInsight(
                        id="response_time_fast",
                        type="positive",
                        category="timeline",
                        message=f"Average response time is {avg} days. Companies respond quickly to you!",
                        value=f"{avg} days",
                    )
                )
            elif avg > 21:
                out.append(
                    CareerInsight(
                        id="response_time_slow",
                        type="insight",
                        category="timeline",
                        message=f"Average {avg} days to hear back. Be patient and follow up after 2 weeks.",
                        value=f"{avg} days",
                    )
                )

        applied = _timing(analytics.time_in_status, S.APPLIED)
        if applied is not None and applied.count >= 3 and applied.avg_days > 14:
            days = round_half_up(applied.avg_days)
            out.append(
                CareerInsight(
                    id="applied_long_wait",
                    type="insight",
                    category="timeline",
                    message=(
                        f"Applications sit in 'Applied' for ~{days} days on average. "
                        "Consider proactive follow-ups."
                    ),
                    value=f"{days} days",
                )
            )

        interview = _timing(analytics.time_in_status, S.INTERVIEW)
        if interview is not None and interview.count >= 2:
            days = round_half_up(interview.avg_days)
            out.append(
                CareerInsight(
                    id="interview_duration",
                    type="insight",
                    category="timeline",
                    message=f"Interview processes take ~{days} days on average for you.",
                    value=f"{days} days",
                )
            )

    # ── conversion ───────────────────────────────────────────────────────────

    @staticmethod
    def _conversion(analytics: ApplicationAnalytics, out: List[CareerInsight]) -> None:
        if analytics.total_applications < 3:
            return

        funnel = analytics.conversion_funnel
        # Only the first qualifying gap in stage order is reported.
        for prev, curr in zip(funnel, funnel[1:]):
            drop = prev.percentage - curr.percentage
            if drop >= 50 and prev.count >= 3:
                out.append(
                    CareerInsight(
                        id=f"dropoff_{curr.stage.value.lower()}",
                        type="warning",
                        category="conversion",
                        message=(
                            f"{drop}% drop-off from {prev.stage.value} to {curr.stage.value}. "
                            "This is your biggest conversion gap."
                        ),
                        value=f"{drop}%",
                    )
                )
                break

        oa = _stage(funnel, S.OA)
        interview = _stage(funnel, S.INTERVIEW)
        offer = _stage(funnel, S.OFFER)

        if oa is not None and interview is not None and oa.count >= 2:
            rate = percent(interview.count, oa.count)
            if rate >= 60:
                out.append(
                    CareerInsight(
                        id="oa_conversion_good",
                        type="positive",
                        category="conversion",
                        message=f"{rate}% of OAs convert to interviews. Your assessment skills are strong!",
                        value=f"{rate}%",
                    )
                )

        if interview is not None and offer is not None and interview.count >= 2:
            rate = percent(offer.count, interview.count)
            if rate >= 40:
                out.append(
                    CareerInsight(
                        id="interview_to_offer_good",
                        type="positive",
                        category="conversion",
                        message=f"{rate}% of interviews result in offers. You interview well!",
                        value=f"{rate}%",
                    )
                )
            elif rate < 20 and interview.count >= 5:
                out.append(
                    CareerInsight(
                        id="interview_to_offer_low",
                        type="warning",
                        category="conversion",
                        message=f"Only {rate}% of interviews lead to offers. Consider interview prep or feedback.",
                        value=f"{rate}%",
                    )
                )

        outcome = analytics.outcome_rate
        if outcome.rejected_count >= 3 and outcome.rejected > 60:
            out.append(
                CareerInsight(
                    id="high_rejection",
                    type="warning",
                    category="conversion",
                    message=f"{outcome.rejected}% rejection rate. Review your applications for improvement areas.",
                    value=f"{outcome.rejected}%",
                )
            )

        if outcome.accepted_count > 0:
            n = outcome.accepted_count
            out.append(
                CareerInsight(
                    id="acceptance_rate",
                    type="positive",
                    category="conversion",
                    message=f"{outcome.accepted}% overall acceptance rate with {n} {_plural('offer', n)} accepted!",
                    value=f"{outcome.accepted}%",
                )
            )

    # ── general ──────────────────────────────────────────────────────────────

    @staticmethod
    def _general(analytics: ApplicationAnalytics, out: List[CareerInsight]) -> None:
        total = analytics.total_applications
        platforms = len(analytics.platform_metrics)
        roles = analytics.role_metrics

        if platforms >= 3 and total >= 10:
            out.append(
                CareerInsight(
                    id="platform_diversity",
                    type="insight",
                    category="general",
                    message=f"You're using {platforms} different platforms. Good diversification strategy!",
                    value=f"{platforms} platforms",
                )
            )

        if len(roles) == 1 and total >= 5:
            out.append(
                CareerInsight(
                    id="role_focused",
                    type="insight",
                    category="general",
                    message=f"All {total} applications are for {roles[0].role}. Focused approach can be effective!",
                    value=roles[0].role,
                )
            )
        elif len(roles) > 5 and total >= 10:
            out.append(
                CareerInsight(
                    id="role_scattered",
                    type="insight",
                    category="general",
                    message=(
                        f"You're applying to {len(roles)} different role types. "
                        "Consider focusing on 2-3 primary roles."
                    ),
                    value=f"{len(roles)} roles",
                )
            )

        if total >= 20:
            out.append(
                CareerInsight(
                    id="high_volume",
                    type="insight",
                    category="general",
                    message=f"{total} applications tracked! Strong persistence in your job search.",
                    value=str(total),
                )
            )


def generate_insights(analytics: ApplicationAnalytics) -> List[CareerInsight]:
    return InsightService().generate(analytics)


def select_for_display(insights: List[CareerInsight], per_type: int = 2, limit: int = 5) -> List[CareerInsight]:
    """Balanced sample for a small panel: up to `per_type` positives, then warnings, then general, capped at `limit`."""
    picked: List[CareerInsight] = []
    for kind in ("positive", "warning", "insight"):
        picked.extend([i for i in insights if i.type == kind][:per_type])
    return picked[:limit]
