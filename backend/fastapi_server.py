#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
AutoApply REST API Server with Activity Polling
@file purpose: Start, stop, pause and resume automation sessions and poll
their activity messages
"""

import os

# CRITICAL: Set UTF-8 encoding for Windows console to handle emojis in logs
import sys

# Fix Windows console encoding issues with emojis
if sys.platform == "win32":
    import io

    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding="utf-8")
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding="utf-8")

# Set the Playwright browsers path to the system-wide location
if sys.platform == "darwin":  # macOS
    PLAYWRIGHT_BROWSERS_PATH = os.path.expanduser("~/Library/Caches/ms-playwright")
elif sys.platform == "win32":  # Windows
    PLAYWRIGHT_BROWSERS_PATH = os.path.join(
        os.path.expanduser("~"), "AppData", "Local", "ms-playwright"
    )
else:
    PLAYWRIGHT_BROWSERS_PATH = os.path.expanduser("~/.cache/ms-playwright")

os.environ.setdefault("PLAYWRIGHT_BROWSERS_PATH", PLAYWRIGHT_BROWSERS_PATH)

import json  # noqa: E402
import logging  # noqa: E402
from contextlib import asynccontextmanager  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import uvicorn  # noqa: E402
from fastapi import FastAPI, HTTPException  # noqa: E402
from fastapi.middleware.cors import CORSMiddleware  # noqa: E402
from pydantic import BaseModel, ConfigDict, Field  # noqa: E402

from apply_bot.apply_bot_controller import apply_bot_controller  # noqa: E402
from config import BETTERSTACK_INGESTING_HOST, BETTERSTACK_SOURCE_TOKEN  # noqa: E402
from local_config import CONTROL_PORT  # noqa: E402
from logger import initialize_logging  # noqa: E402
from platforms.platform_registry import get_supported_platforms  # noqa: E402

initialize_logging(
    betterstack_token=BETTERSTACK_SOURCE_TOKEN,
    betterstack_host=BETTERSTACK_INGESTING_HOST,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Forget windows left over from a previous run; stop every running session on shutdown"""
    stale = apply_bot_controller.orchestrator.cleanup_stale_windows()
    if stale:
        logger.info(f"Removed {stale} stale automation window(s) on startup")
    yield
    for session_id in list(apply_bot_controller.bots.keys()):
        apply_bot_controller.cleanup_session(session_id)
    logger.info("All automation sessions stopped")


app = FastAPI(
    title="AutoApply REST API",
    description="REST API for job application automation with activity polling",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Pydantic models for REST API
class StartAutomationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    platform: str
    user_id: str = Field(..., alias="userId")
    jobs_to_apply: int = Field(..., alias="jobsToApply")
    preferences: Optional[Dict[str, Any]] = None
    user_profile: Optional[Dict[str, Any]] = Field(None, alias="userProfile")
    dev_mode: bool = Field(False, alias="devMode")
    session_id: Optional[str] = Field(None, alias="sessionId")
    api_host: Optional[str] = Field(None, alias="apiHost")

    def to_start_request(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class BotStatusResponse(BaseModel):
    success: bool
    bot_id: Optional[str] = None
    session_id: Optional[str] = None
    platform: Optional[str] = None
    is_running: bool = False
    status: str = "unknown"
    has_browser: bool = False
    session: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    error: Optional[str] = None


class ActivityResponse(BaseModel):
    success: bool
    session_id: str
    messages: List[Dict[str, Any]] = []
    count: int = 0


@app.get("/")
def root():
    return {"message": "AutoApply REST API is running", "status": "healthy"}


@app.get("/health")
def health():
    """Health check endpoint"""
    status = apply_bot_controller.get_all_bots_status()
    return {"status": "healthy", "active_sessions": status["total_bots"]}


@app.get("/api/platforms")
def list_platforms():
    return {"success": True, "platforms": get_supported_platforms()}


@app.post("/api/automation/start")
async def start_automation(request: StartAutomationRequest):
    """Start an automation session"""
    start_request = request.to_start_request()
    logger.info(
        f"Starting {request.platform} automation for user {request.user_id} "
        f"({request.jobs_to_apply} jobs)"
    )
    result = apply_bot_controller.start_automation_controller(start_request)

    if result.get("status") == "invalid_request":
        raise HTTPException(status_code=400, detail=result)
    if not result.get("success", False):
        raise HTTPException(status_code=500, detail=result.get("message", "Unknown error"))

    return {
        "success": True,
        "bot_id": result.get("bot_id"),
        "session_id": result.get("session_id"),
        "message": result.get("message", "Unknown result"),
        "polling_registered": True,
    }


@app.post("/api/automation/{session_id}/stop")
async def stop_automation(session_id: str):
    try:
        logger.info(f"Stopping automation session {session_id}")
        result = apply_bot_controller.stop_automation_controller(session_id)
        return {
            "success": result.get("success", False),
            "message": result.get("message", "Unknown result"),
        }
    except Exception as e:
        logger.error(f"Failed to stop automation: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/automation/{session_id}/pause")
async def pause_automation(session_id: str):
    try:
        logger.info(f"Pausing automation session {session_id}")
        result = apply_bot_controller.pause_automation_controller(session_id)
        return {
            "success": result.get("success", False),
            "message": result.get("message", "Unknown result"),
        }
    except Exception as e:
        logger.error(f"Failed to pause automation: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/automation/{session_id}/resume")
async def resume_automation(session_id: str):
    try:
        logger.info(f"Resuming automation session {session_id}")
        result = apply_bot_controller.resume_automation_controller(session_id)
        return {
            "success": result.get("success", False),
            "message": result.get("message", "Unknown result"),
        }
    except Exception as e:
        logger.error(f"Failed to resume automation: {e}")
        raise HTTPException(status_code=500, detail=str(e))


@app.get("/api/automation/{session_id}/status")
async def get_automation_status(session_id: str):
    try:
        result = apply_bot_controller.get_bot_status(session_id)
        return BotStatusResponse(
            success=result.get("bot_exists", False),
            bot_id=result.get("bot_id"),
            session_id=session_id,
            platform=result.get("platform"),
            is_running=result.get("is_running", False),
            status=result.get("status", "unknown"),
            has_browser=result.get("has_browser", False),
            session=result.get("session"),
            message=result.get("message"),
        )
    except Exception as e:
        logger.error(f"Failed to get automation status: {e}")
        return BotStatusResponse(success=False, session_id=session_id, error=str(e))


@app.get("/api/automation/{session_id}/activity")
async def get_pending_activity_messages(session_id: str):
    """Get pending activity messages for a session (for polling)"""
    messages = apply_bot_controller.drain_activity_messages(session_id)
    return ActivityResponse(
        success=True, session_id=session_id, messages=messages, count=len(messages)
    )


@app.get("/api/automation")
async def list_automations():
    return {"success": True, **apply_bot_controller.get_all_bots_status()}


def main():
    import argparse  # noqa: E402

    parser = argparse.ArgumentParser(description="AutoApply REST API Server")
    parser.add_argument("--port", type=int, default=CONTROL_PORT, help="Port to run server on")
    parser.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")

    args = parser.parse_args()

    logger.info(f"Starting AutoApply REST API on {args.host}:{args.port}")

    # Signal readiness to the desktop shell before starting the server
    print(
        json.dumps(
            {
                "type": "initialization",
                "status": "complete",
                "server_url": f"http://{args.host}:{args.port}",
            }
        ),
        flush=True,
    )

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level="info",
        loop="asyncio",
        access_log=False,
    )


if __name__ == "__main__":
    main()
