"""
Pydantic models: the data contracts for the service.

Separating models from routes lets us reuse schemas across the API,
the engine, the request log and tests without circular imports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Bulk analysis is an operator tool, not a scanner
MAX_BULK_IPS = 100


class SignalName(str, Enum):
    geoip = "geoip"
    tor = "tor"
    vpn = "vpn"
    user_agent = "userAgent"
    reputation = "reputation"


class RiskLevel(str, Enum):
    low = "LOW"
    medium = "MEDIUM"
    high = "HIGH"


class BlockReason(str, Enum):
    tor_exit_node = "TOR_EXIT_NODE"
    vpn_proxy_detected = "VPN_PROXY_DETECTED"
    bad_ip_reputation = "BAD_IP_REPUTATION"
    high_risk_score = "HIGH_RISK_SCORE"
    analysis_error = "ANALYSIS_ERROR"


# ── Engine contracts ─────────────────────────────────────────────────────────


class Policy(BaseModel):
    """Read-only policy inputs the engine is parameterised by."""

    model_config = ConfigDict(frozen=True)

    block_vpn_tor: bool = False
    strict_mode: bool = False
    reputation_api_key: Optional[str] = None
    vpn_api_key: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Any) -> "Policy":
        return cls(
            block_vpn_tor=settings.block_vpn_tor,
            strict_mode=settings.strict_mode,
            reputation_api_key=settings.reputation_api_key or None,
            vpn_api_key=settings.vpn_api_key or None,
        )


class ClientFingerprint(BaseModel):
    """Cache and stats key for one client. Hashable because it is frozen."""

    model_config = ConfigDict(frozen=True)

    ip: str
    user_agent: str = ""


class SignalResult(BaseModel):
    """Output of one signal collector."""

    model_config = ConfigDict(frozen=True)

    name: SignalName
    performed: bool = False
    points: int = Field(default=0, ge=0)
    details: Dict[str, Any] = Field(default_factory=dict)


class RiskAnalysis(BaseModel):
    """Final decision for one client. Never mutated after the gate builds it."""

    model_config = ConfigDict(frozen=True)

    ip: str
    risk_score: int = Field(ge=0, le=100)
    risk_level: RiskLevel
    is_blocked: bool
    reason: Optional[BlockReason] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    checks: Dict[SignalName, bool] = Field(default_factory=dict)


# ── Request log ──────────────────────────────────────────────────────────────


class LogRecord(BaseModel):
    """One evaluated request as persisted in the per-day request log."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    request_id: str
    fingerprint: ClientFingerprint
    method: str = "GET"
    url: str = "/"
    analysis: RiskAnalysis


class LastHourStats(BaseModel):
    total: int = 0
    blocked: int = 0


class StatsResponse(BaseModel):
    total_requests: int = 0
    blocked_requests: int = 0
    allowed_requests: int = 0
    avg_risk_score: float = 0.0
    top_block_reasons: Dict[str, int] = Field(default_factory=dict)
    top_countries: Dict[str, int] = Field(default_factory=dict)
    last_hour: LastHourStats = Field(default_factory=LastHourStats)


# ── API request / response models ────────────────────────────────────────────


class AnalyzeRequest(BaseModel):
    ip: str = Field(min_length=1)
    user_agent: str = ""


class BulkAnalyzeRequest(BaseModel):
    ips: List[str] = Field(min_length=1, max_length=MAX_BULK_IPS)


class BulkAnalyzeResponse(BaseModel):
    total: int
    blocked: int
    results: List[RiskAnalysis]


class GateResponse(BaseModel):
    allowed: bool
    request_id: str
    risk_score: int
    reason: Optional[BlockReason] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class LogListResponse(BaseModel):
    total: int
    logs: List[LogRecord]


class RefreshResponse(BaseModel):
    status: str
    message: str


class ThreatListStatus(BaseModel):
    count: int
    source: Optional[str] = None
    last_update: Optional[datetime] = None


class HealthStatus(str, Enum):
    ok = "ok"
    degraded = "degraded"


class HealthResponse(BaseModel):
    status: HealthStatus
    tor_exit_nodes: ThreatListStatus
    vpn_ranges: ThreatListStatus
    cache: Dict[str, float]
    block_vpn_tor: bool
    strict_mode: bool
