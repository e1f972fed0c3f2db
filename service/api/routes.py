import asyncio
import logging

from api.dependencies import client_ip, get_context
from context import GuardianContext
from engine.gatekeeper import new_request_id
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from models import (
    AnalyzeRequest,
    BulkAnalyzeRequest,
    BulkAnalyzeResponse,
    GateResponse,
    HealthResponse,
    HealthStatus,
    LogListResponse,
    RefreshResponse,
    RiskAnalysis,
    StatsResponse,
    ThreatListStatus,
)
from threat_lists.store import HARDCODED_SOURCE, ThreatList

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/guard", response_model=GateResponse)
async def guard(request: Request, ctx: GuardianContext = Depends(get_context)):
    """
    Gate decision for a reverse proxy (e.g. nginx auth_request).

    The proxy forwards the original request's client address and line in
    headers; we answer 403 to block or 200 to let it through. Decisions are
    cached per (ip, user-agent) and logged.
    """
    ip = client_ip(request)
    user_agent = request.headers.get("user-agent", "")
    method = request.headers.get("x-original-method", request.method)
    url = request.headers.get("x-original-uri", request.url.path)
    request_id = new_request_id()

    analysis = await ctx.gatekeeper.check(ip, user_agent, method=method, url=url, request_id=request_id)

    if analysis.is_blocked:
        body = GateResponse(
            allowed=False,
            request_id=request_id,
            risk_score=analysis.risk_score,
            reason=analysis.reason,
        )
        return JSONResponse(status_code=403, content=body.model_dump(mode="json"))

    return GateResponse(
        allowed=True,
        request_id=request_id,
        risk_score=analysis.risk_score,
        details=analysis.details,
    )


@router.post("/analyze", response_model=RiskAnalysis)
async def analyze(body: AnalyzeRequest, ctx: GuardianContext = Depends(get_context)):
    """Uncached, unlogged evaluation of one address for operators and onboarding checks."""
    return await ctx.engine.analyze(body.ip, body.user_agent)


@router.post("/analyze/bulk", response_model=BulkAnalyzeResponse)
async def analyze_bulk(body: BulkAnalyzeRequest, ctx: GuardianContext = Depends(get_context)):
    """
    Evaluate up to 100 addresses concurrently. Results keep the input order.

    The cap is enforced by the request model (422 beyond it) so one call
    cannot fan out into thousands of upstream reputation lookups.
    """
    results = await asyncio.gather(*(ctx.engine.analyze(ip) for ip in body.ips))
    return BulkAnalyzeResponse(
        total=len(results),
        blocked=sum(1 for result in results if result.is_blocked),
        results=results,
    )


@router.get("/stats", response_model=StatsResponse)
def stats(ctx: GuardianContext = Depends(get_context)):
    """Approximate statistics over the most recent requests of the current day."""
    return ctx.get_stats()


@router.get("/logs", response_model=LogListResponse)
def recent_logs(
    limit: int = Query(100, ge=1, le=1000, description="Maximum records to return"),
    ctx: GuardianContext = Depends(get_context),
):
    logs = ctx.request_log.get_recent_logs(limit)
    return LogListResponse(total=len(logs), logs=logs)


@router.post("/threat-lists/refresh", response_model=RefreshResponse, status_code=202)
async def refresh_threat_lists(ctx: GuardianContext = Depends(get_context)):
    """
    Triggers an immediate refresh of the Tor and VPN lists.

    Returns 202 Accepted immediately; the refresh runs in the background.
    Returns 409 Conflict if a refresh is already in progress.
    """
    result = ctx.jobs.trigger_refresh()

    if result["status"] == "conflict":
        raise HTTPException(status_code=409, detail=result["message"])

    return RefreshResponse(status=result["status"], message=result["message"])


def _list_status(threat_list: ThreatList) -> ThreatListStatus:
    snapshot = threat_list.snapshot
    if snapshot is None:
        return ThreatListStatus(count=0)
    return ThreatListStatus(count=len(snapshot), source=snapshot.source, last_update=snapshot.last_update)


@router.get("/health", response_model=HealthResponse)
def health(ctx: GuardianContext = Depends(get_context)):
    """
    Lightweight health check. Does NOT call any upstream.

    Status semantics:
      ok         a real Tor list is loaded
      degraded   no Tor list yet, or only the hardcoded fallback
    """
    tor = _list_status(ctx.threat_lists.tor)
    degraded = tor.source is None or tor.source == HARDCODED_SOURCE

    return HealthResponse(
        status=HealthStatus.degraded if degraded else HealthStatus.ok,
        tor_exit_nodes=tor,
        vpn_ranges=_list_status(ctx.threat_lists.vpn),
        cache=ctx.cache.stats(),
        block_vpn_tor=ctx.policy.block_vpn_tor,
        strict_mode=ctx.policy.strict_mode,
    )
