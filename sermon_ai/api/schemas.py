"""
Request/response schemas using Pydantic models.

Shared by the provider clients, the orchestration services and the HTTP API.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional
from enum import Enum

from pydantic import BaseModel, Field


# ============================================================================
# Enums
# ============================================================================

class MessageRole(str, Enum):
    """Chat message role."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class HealthState(str, Enum):
    """Provider health lifecycle."""
    UNKNOWN = "unknown"
    PROBING = "probing"
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


# ============================================================================
# Provider Call Schemas
# ============================================================================

class ChatMessage(BaseModel):
    """Chat message model."""
    role: MessageRole
    content: str


class SendOptions(BaseModel):
    """Per-call generation options; unset fields use provider defaults."""
    model: Optional[str] = None
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    max_tokens: Optional[int] = Field(default=None, ge=1)
    response_format: Optional[Dict[str, str]] = None


class ProviderInfo(BaseModel):
    """Static description of a declared provider."""
    id: str
    name: str
    is_configured: bool
    capabilities: List[str]
    primary: bool


class ProviderStatus(BaseModel):
    """Result of the most recent health probe for a provider."""
    provider: str
    is_available: bool = False
    is_healthy: bool = False
    health: HealthState = HealthState.UNKNOWN
    last_checked: datetime
    error: Optional[str] = None
    response_time_ms: Optional[int] = None


# ============================================================================
# Dispatch Schemas
# ============================================================================

class AttemptMetrics(BaseModel):
    """Outcome of a single provider attempt."""
    provider: str
    response_time_ms: int
    success: bool
    token_count: Optional[int] = None
    error: Optional[str] = None
    timestamp: datetime


class DispatchResult(BaseModel):
    """Successful dispatch outcome."""
    content: str
    provider: str
    metrics: AttemptMetrics


class DispatchRequest(BaseModel):
    """HTTP body for an orchestrated dispatch."""
    messages: List[ChatMessage] = Field(..., min_length=1)
    options: SendOptions = Field(default_factory=SendOptions)
    provider: Optional[str] = Field(
        default=None,
        description="Explicit provider; disables failover"
    )
    feature: str = "general"
    query: str = ""


class CurrentProviderUpdate(BaseModel):
    """HTTP body for changing the current provider."""
    provider: str


# ============================================================================
# Metrics Schemas
# ============================================================================

class WindowStats(BaseModel):
    """Aggregate outcome statistics over a set of request metrics."""
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    avg_response_time_ms: float = 0.0
    success_rate_percent: float = 0.0


class ProviderStats(WindowStats):
    """Windowed statistics with a per-feature breakdown."""
    provider: Optional[str] = None
    window_days: int
    by_feature: Dict[str, WindowStats] = Field(default_factory=dict)


class PreferenceBreakdown(BaseModel):
    """Share of recorded comparison preferences per provider."""
    total: int
    percentages: Dict[str, float]


# ============================================================================
# Comparison Schemas
# ============================================================================

class ComparisonSide(BaseModel):
    """One provider's side of a live comparison."""
    content: str
    success: bool
    error: Optional[str] = None
    response_time_ms: Optional[int] = None


class ComparisonOutcome(BaseModel):
    """Both sides of a comparison awaiting the user's preference."""
    feature: str
    query: str
    language: str = "English"
    sides: Dict[str, ComparisonSide]
    compared_at: datetime


class CompareRequest(BaseModel):
    """HTTP body for starting a comparison."""
    feature: str
    query: str = Field(..., min_length=1)
    language: str = "English"


class PreferenceRequest(BaseModel):
    """HTTP body for recording a comparison preference."""
    outcome: ComparisonOutcome
    preferred_provider: str


class ComparisonRecordResponse(BaseModel):
    """Persisted comparison result."""
    id: int
    feature: str
    query: str
    language: Optional[str] = None
    provider_a: str
    provider_b: str
    response_a: str
    response_b: str
    metrics_a: Dict[str, Any]
    metrics_b: Dict[str, Any]
    preferred_provider: str
    compared_at: datetime

    model_config = {"from_attributes": True}


# ============================================================================
# Error Schemas
# ============================================================================

class ErrorDetail(BaseModel):
    """Error detail model."""
    code: str
    message: str
    details: Optional[Dict[str, Any]] = None


class ErrorResponse(BaseModel):
    """Error response model."""
    error: ErrorDetail
