"""
Risk scoring and the block decision.

A request moves through three stages:
  UNSCORED  a list of SignalResults from the collectors
  SCORED    points summed and clamped to [0, 100], level assigned
  DECIDED   compared against the mode threshold, reason picked

Everything here is a pure function of the signal results and the policy,
which is what makes a cached decision safe to replay.
"""

from typing import Iterable, List, Optional

from models import BlockReason, Policy, RiskAnalysis, RiskLevel, SignalResult

MAX_SCORE = 100
MEDIUM_RISK_FLOOR = 40
HIGH_RISK_FLOOR = 70

STRICT_THRESHOLD = 40
NORMAL_THRESHOLD = 70


def aggregate(results: Iterable[SignalResult]) -> int:
    total = sum(result.points for result in results)
    return max(0, min(total, MAX_SCORE))


def classify(score: int) -> RiskLevel:
    if score >= HIGH_RISK_FLOOR:
        return RiskLevel.high
    if score >= MEDIUM_RISK_FLOOR:
        return RiskLevel.medium
    return RiskLevel.low


def block_threshold(strict_mode: bool) -> int:
    return STRICT_THRESHOLD if strict_mode else NORMAL_THRESHOLD


def select_reason(details: dict) -> BlockReason:
    """First match wins: Tor, then VPN, then reputation, then the bare score."""
    if details.get("is_tor"):
        return BlockReason.tor_exit_node
    if details.get("vpn_blocked"):
        return BlockReason.vpn_proxy_detected
    if details.get("bad_reputation"):
        return BlockReason.bad_ip_reputation
    return BlockReason.high_risk_score


def decide(ip: str, results: List[SignalResult], policy: Policy) -> RiskAnalysis:
    details: dict = {}
    checks = {}
    for result in results:
        details.update(result.details)
        checks[result.name] = result.performed

    score = aggregate(results)
    is_blocked = score >= block_threshold(policy.strict_mode)
    reason: Optional[BlockReason] = select_reason(details) if is_blocked else None

    return RiskAnalysis(
        ip=ip,
        risk_score=score,
        risk_level=classify(score),
        is_blocked=is_blocked,
        reason=reason,
        details=details,
        checks=checks,
    )


def failed_analysis(ip: str) -> RiskAnalysis:
    """The fail-closed decision used when the pipeline itself breaks."""
    return RiskAnalysis(
        ip=ip,
        risk_score=MAX_SCORE,
        risk_level=RiskLevel.high,
        is_blocked=True,
        reason=BlockReason.analysis_error,
        details={"error": "Analysis failed"},
    )
