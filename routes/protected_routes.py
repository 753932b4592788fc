"""
Sample application routes behind the Turnstile gate.

They stand in for the embedding application's handlers: the gate either
forwards to them untouched or refuses the request before they run.
"""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["protected"])


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "ok"


@router.post("/submit")
async def submit() -> dict:
    return {"status": "accepted"}
