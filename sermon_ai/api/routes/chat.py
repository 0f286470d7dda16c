"""
Orchestrated dispatch routes.
"""
import asyncio
import json
from typing import Any, Dict, Tuple

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from sermon_ai.api.dependencies import get_orchestrator, get_user_id
from sermon_ai.api.schemas import DispatchRequest, DispatchResult, ErrorResponse
from sermon_ai.core.logger import get_logger
from sermon_ai.providers.errors import AggregateFailure
from sermon_ai.services.orchestrator import Orchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/dispatch", tags=["dispatch"])


def _sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.post(
    "",
    response_model=DispatchResult,
    responses={
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    }
)
async def dispatch(
    request: DispatchRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_user_id)
):
    """
    Send messages to the current (or named) provider.

    Without an explicit ``provider`` a failed call is retried once on the
    partner provider. When every attempt fails the response is a 502 that
    lists each attempt's error.
    """
    logger.info(
        "Dispatch request received",
        feature=request.feature,
        provider=request.provider,
        messages=len(request.messages)
    )
    return await orchestrator.dispatch(
        request.messages,
        request.options,
        request.provider,
        feature=request.feature,
        query=request.query,
        user_id=user_id,
    )


@router.post("/stream", responses={404: {"model": ErrorResponse}})
async def stream_dispatch(
    request: DispatchRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
    user_id: str = Depends(get_user_id)
):
    """
    Stream a reply as server-sent events.

    Each event carries ``content``; the last one carries either ``done``
    with the provider and metrics or ``error`` with the failure.
    """
    # Resolve early so an unknown provider is a 404, not a broken stream
    if request.provider:
        orchestrator.registry.get(request.provider)

    queue: asyncio.Queue[Tuple[str, Any]] = asyncio.Queue()

    async def on_chunk(chunk: str) -> None:
        await queue.put(("chunk", chunk))

    async def run() -> None:
        try:
            result = await orchestrator.stream_dispatch(
                request.messages,
                on_chunk,
                request.options,
                request.provider,
                feature=request.feature,
                query=request.query,
                user_id=user_id,
            )
            await queue.put(("done", result.model_dump(mode="json", exclude={"content"})))
        except AggregateFailure as e:
            await queue.put(("error", e.to_dict()))
        except Exception as e:
            logger.error("Streaming dispatch crashed", error=str(e), exc_info=True)
            await queue.put(("error", {"error": str(e) or "AI request failed"}))

    async def event_stream():
        task = asyncio.create_task(run())
        while True:
            kind, payload = await queue.get()
            if kind == "chunk":
                yield _sse({"content": payload})
            elif kind == "done":
                yield _sse({"done": True, **payload})
                break
            else:
                yield _sse({"error": payload})
                break
        yield "data: [DONE]\n\n"
        await task

    return StreamingResponse(event_stream(), media_type="text/event-stream")
