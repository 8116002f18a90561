"""Streaming chat turn endpoint."""
from __future__ import annotations

import json
from typing import AsyncIterator

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, StreamingResponse

from app.api.deps import get_chat_orchestrator, get_client_ip
from app.schemas import ChatErrorResponse, ChatTurnRequest
from app.services.chat_orchestrator import ChatOrchestrator, TurnOutcome, TurnRequest, TurnStream


router = APIRouter(tags=["chat"])

_STREAM_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


async def _ndjson_events(stream: TurnStream) -> AsyncIterator[str]:
    async for chunk in stream.chunks():
        yield json.dumps({"type": "chunk", "text": chunk}, ensure_ascii=False) + "\n"
    result = await stream.result()
    yield json.dumps(
        {
            "type": "done",
            "sessionId": result.session_id,
            "turnKind": result.kind.value,
            "outcome": result.outcome.value,
            "wantsContinuation": result.wants_continuation,
            "interrupted": result.interrupted,
        }
    ) + "\n"


@router.post(
    "/chat",
    responses={
        status.HTTP_400_BAD_REQUEST: {"description": "Empty message or language not set"},
        status.HTTP_429_TOO_MANY_REQUESTS: {"description": "Rate limited"},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ChatErrorResponse},
    },
)
async def send_chat_turn(
    payload: ChatTurnRequest,
    *,
    orchestrator: ChatOrchestrator = Depends(get_chat_orchestrator),
    client_ip: str = Depends(get_client_ip),
):
    """Stream the partner's reply to one chat turn.

    The body is plain text by default. With ``streamFormat: "ndjson"`` each
    line is a JSON event and the last one carries the outcome and whether the
    partner wants to continue.
    """

    stream = await orchestrator.start_turn(
        TurnRequest(
            session_id=payload.session_id,
            message=payload.message,
            turn_kind=payload.turn_kind,
            start=payload.start,
            context=payload.to_context_update(),
            client_messages=payload.messages,
            client_ip=client_ip,
        )
    )

    finished = await stream.wait_started()
    if finished is not None and finished.outcome is TurnOutcome.FAILED:
        body = ChatErrorResponse(reply=finished.text, error=finished.error or "Completion failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(by_alias=True),
        )

    headers = {**_STREAM_HEADERS, "X-Session-Id": stream.session_id}
    if payload.stream_format == "ndjson":
        return StreamingResponse(_ndjson_events(stream), media_type="application/x-ndjson", headers=headers)
    return StreamingResponse(stream.chunks(), media_type="text/plain; charset=utf-8", headers=headers)
