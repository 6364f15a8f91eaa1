"""HTTP endpoint for Slack slash commands."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime
from urllib.parse import parse_qs

import structlog
import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from runner_monitor import __version__
from runner_monitor.query.blocks import text_block
from runner_monitor.query.commands import SlashCommandHandler
from runner_monitor.query.history import repo_id_from
from runner_monitor.query.verify import verify_slack_signature
from runner_monitor.settings import AppSettings
from runner_monitor.store.store import StateStore


logger = structlog.get_logger()

SLASH_COMMANDS_PATH = "/slack/commands"


def _utc_now() -> datetime:
    return datetime.now(UTC)


def get_settings(request: Request) -> AppSettings:
    """Settings attached to the app at creation."""
    settings = getattr(request.app.state, "settings", None)
    if not isinstance(settings, AppSettings):
        msg = "Application settings not configured"
        raise RuntimeError(msg)
    return settings


def default_repo_id(settings: AppSettings) -> str | None:
    """Repository answered by slash commands.

    ``RUNNER_MONITOR_DEFAULT_REPO`` wins; otherwise the first configured
    repository.
    """
    if settings.default_repo:
        return repo_id_from(settings.default_repo)
    slugs = settings.repository_slugs()
    return repo_id_from(slugs[0]) if slugs else None


def _respond(
    settings: AppSettings, body: bytes, clock: Callable[[], datetime]
) -> JSONResponse:
    """Answer a verified slash-command request.

    Runs in a worker thread. The state database is opened only if it
    already exists; a missing one is reported, never created.
    """
    form = parse_qs(body.decode("utf-8"))
    command = form.get("command", [""])[0]
    text = form.get("text", [""])[0]
    log = logger.bind(component="slack", command=command)

    repo_id = default_repo_id(settings)
    if repo_id is None:
        blocks = [text_block("No repository is configured for runner commands.")]
        return JSONResponse({"response_type": "ephemeral", "blocks": blocks})

    if not settings.state_path.exists():
        log.warning("state_database_missing", state_path=str(settings.state_path))
        return JSONResponse(
            {"error": "State database not found"},
            status_code=503,
        )

    with StateStore(settings.state_path, clock=clock) as store:
        blocks = SlashCommandHandler(store, repo_id, clock).handle(command, text)
    return JSONResponse({"response_type": "in_channel", "blocks": blocks})


def create_app(
    settings: AppSettings | None = None,
    clock: Callable[[], datetime] = _utc_now,
) -> FastAPI:
    """Build the slash-command application.

    Args:
        settings: Settings to serve with (read from the environment if None).
        clock: Source of the current time.

    Returns:
        The FastAPI application.
    """
    app = FastAPI(title="runner-monitor", version=__version__)
    app.state.settings = settings or AppSettings()

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post(SLASH_COMMANDS_PATH)
    async def slash_command(
        request: Request,
        settings: AppSettings = Depends(get_settings),
    ) -> JSONResponse:
        log = logger.bind(component="slack")
        body = await request.body()

        if not verify_slack_signature(
            settings.slack_signing_secret,
            request.headers.get("X-Slack-Request-Timestamp"),
            request.headers.get("X-Slack-Signature"),
            body,
            now=clock().timestamp(),
        ):
            return JSONResponse({"error": "Invalid signature"}, status_code=401)

        try:
            return await asyncio.to_thread(_respond, settings, body, clock)
        except Exception as e:  # noqa: BLE001
            log.exception("slash_command_failed", error=str(e))
            return JSONResponse({"error": "Internal server error"}, status_code=500)

    return app


def serve(settings: AppSettings, host: str, port: int) -> None:
    """Run the slash-command endpoint with uvicorn."""
    logger.info("slack_endpoint_starting", host=host, port=port)
    uvicorn.run(create_app(settings), host=host, port=port, log_level="info")
