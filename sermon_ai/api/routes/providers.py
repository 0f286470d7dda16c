"""
Provider registry, selection and health probe routes.
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from sermon_ai.api.dependencies import get_orchestrator
from sermon_ai.api.schemas import (
    CurrentProviderUpdate,
    ErrorResponse,
    ProviderInfo,
    ProviderStatus,
)
from sermon_ai.core.logger import get_logger
from sermon_ai.services.orchestrator import Orchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/providers", tags=["providers"])


class ProviderListing(BaseModel):
    providers: List[ProviderInfo]
    current: str
    statuses: Dict[str, ProviderStatus]


class CurrentProviderResponse(BaseModel):
    provider: str


class HealthyProviderResponse(BaseModel):
    provider: Optional[str]


# ============================================================================
# Registry & Selection
# ============================================================================

@router.get("", response_model=ProviderListing)
async def list_providers(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """List declared providers with configuration and last known health."""
    return ProviderListing(
        providers=orchestrator.registry.describe(),
        current=await orchestrator.get_current_provider(),
        statuses=orchestrator.probe.cached_statuses(),
    )


@router.get("/current", response_model=CurrentProviderResponse)
async def get_current_provider(orchestrator: Orchestrator = Depends(get_orchestrator)):
    return CurrentProviderResponse(provider=await orchestrator.get_current_provider())


@router.put(
    "/current",
    response_model=CurrentProviderResponse,
    responses={404: {"model": ErrorResponse}}
)
async def set_current_provider(
    body: CurrentProviderUpdate,
    orchestrator: Orchestrator = Depends(get_orchestrator)
):
    """Change the provider used when a request does not name one."""
    await orchestrator.set_current_provider(body.provider)
    return CurrentProviderResponse(provider=body.provider)


@router.get("/healthy", response_model=HealthyProviderResponse)
async def get_healthy_provider(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Preferred provider if healthy, else the first healthy one in priority order."""
    return HealthyProviderResponse(provider=await orchestrator.get_healthy_provider())


# ============================================================================
# Health Probes
# ============================================================================

@router.post("/test", response_model=List[ProviderStatus])
async def test_all_providers(orchestrator: Orchestrator = Depends(get_orchestrator)):
    """Probe the primary providers concurrently."""
    return await orchestrator.probe.test_all()


@router.post(
    "/{provider_id}/test",
    response_model=ProviderStatus,
    responses={404: {"model": ErrorResponse}}
)
async def test_provider(
    provider_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator)
):
    """Probe a single provider."""
    orchestrator.registry.get(provider_id)
    return await orchestrator.probe.test_connection(provider_id)
