"""
Scribe Server

FastAPI server for receiving Slack reactions and running recovery sweeps.

Endpoints:
- POST /slack/events: Slack webhook endpoint
- POST /recovery: Run one recovery sweep (requires X-Recovery-Token)
- GET /health: Health check

Pipeline:
1. Receive webhook event
2. Verify signature and parse reaction_added events
3. Run ReactionPipeline in the background
4. Reply to the thread with the result
"""

import hmac
import json
import logging
from typing import Optional
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, HTTPException, Header, BackgroundTasks
from fastapi.responses import JSONResponse

load_dotenv()

from ..common.config import load_config, AppConfig, ensure_directories
from .handlers import SlackHandler
from .pipeline import ReactionPipeline

logger = logging.getLogger("adrbot.scribe.server")


# Global state
config: Optional[AppConfig] = None
pipeline: Optional[ReactionPipeline] = None
slack_handler: Optional[SlackHandler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize components on startup"""
    global config, pipeline, slack_handler

    logger.info("Starting up...")

    # Ensure directories exist
    ensure_directories()

    # Load config
    config = load_config()
    logger.info(
        "Loaded config (LLM provider: %s, default database: %s)",
        config.llm.provider, config.notion.database_id or "none",
    )

    if not config.slack.bot_token:
        logger.warning("SLACK_BOT_TOKEN is not set; thread fetches and replies will fail")
    if not config.scribe.recovery_token:
        logger.warning("RECOVERY_TOKEN is not set; /recovery is disabled")

    pipeline = ReactionPipeline.from_config(config)
    if config.notion.database_id and not pipeline.check_default_database():
        logger.warning("Default Notion database %s is not reachable", config.notion.database_id)
    slack_handler = SlackHandler(signing_secret=config.slack.signing_secret)

    logger.info("Ready to receive events")

    yield

    # Cleanup
    logger.info("Shutting down...")
    pipeline.close()


app = FastAPI(
    title="adrbot Scribe",
    description="Decision records from Slack threads",
    version="0.1.0",
    lifespan=lifespan
)


# =============================================================================
# Endpoints
# =============================================================================

@app.get("/health")
async def health():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "scribe",
        "initialized": pipeline is not None,
        "llm_provider": config.llm.provider if config else None,
        "default_database": bool(config and config.notion.database_id),
    }


@app.post("/slack/events")
async def slack_events(
    request: Request,
    background_tasks: BackgroundTasks,
    x_slack_signature: Optional[str] = Header(None),
    x_slack_request_timestamp: Optional[str] = Header(None)
):
    """
    Handle Slack webhook events.

    This is the main entry point for Slack integration.
    """
    if not slack_handler or not pipeline:
        raise HTTPException(status_code=503, detail="Handler not initialized")

    # Read body
    body = await request.body()

    # Verify signature
    if not slack_handler.verify_signature(
        body,
        x_slack_signature or "",
        x_slack_request_timestamp or ""
    ):
        raise HTTPException(status_code=401, detail="Invalid signature")

    # Parse JSON
    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    # Handle URL verification challenge
    if slack_handler.is_url_verification(data):
        challenge = slack_handler.get_challenge(data)
        return JSONResponse({"challenge": challenge})

    event = await slack_handler.parse_event(data)

    if event and pipeline.is_trigger(event):
        # Process in background (Slack retries unanswered events after 3s)
        background_tasks.add_task(pipeline.handle, event)

    # Acknowledge receipt
    return JSONResponse({"ok": True})


@app.post("/recovery")
def recovery(x_recovery_token: Optional[str] = Header(None)):
    """Run one recovery sweep and return its report"""
    if not pipeline or not config:
        raise HTTPException(status_code=503, detail="Pipeline not initialized")

    expected = config.scribe.recovery_token
    if not expected or not hmac.compare_digest(x_recovery_token or "", expected):
        raise HTTPException(status_code=401, detail="Invalid recovery token")

    report = pipeline.run_recovery_sweep()
    return {"ok": True, "report": report.to_dict()}


# =============================================================================
# CLI Entry Point
# =============================================================================

def run_server():
    """Run the Scribe server"""
    import uvicorn

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config()
    port = config.slack.port

    logger.info("Starting server on port %d", port)
    uvicorn.run(
        "adrbot.scribe.server:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )


if __name__ == "__main__":
    run_server()
