"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse

from art_publisher.api.models import SessionSnapshot, SignInRequest
from art_publisher.api.presentation import render, render_page
from art_publisher.app_logging import configure_logging
from art_publisher.containers import AppContainer, build_session_controller
from art_publisher.domain.session import PipelineState
from art_publisher.errors import (
    IdentityStateError,
    PipelineStateError,
    VerificationCancelledError,
    VerificationFailedError,
)
from art_publisher.services.session import SessionController

SESSION_COOKIE = "art_publisher_client"
_SESSION_COOKIE_MAX_AGE = 60 * 60 * 24 * 365


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.get("/", response_class=HTMLResponse)
    async def launch(request: Request) -> HTMLResponse:
        """Start a fresh session for this client from the launch query parameters."""
        client_id = request.cookies.get(SESSION_COOKIE)
        set_cookie = not client_id
        if not client_id:
            client_id = uuid4().hex
        controller = _open_session(request.app.state.container, client_id)
        try:
            controller.activate(dict(request.query_params))
        except Exception:
            logger.exception("Failed to load stored identity")
        response = HTMLResponse(
            render_page(
                controller.presentation, SessionSnapshot.from_controller(controller)
            )
        )
        if set_cookie:
            response.set_cookie(
                SESSION_COOKIE,
                client_id,
                max_age=_SESSION_COOKIE_MAX_AGE,
                httponly=True,
                samesite="lax",
            )
        return response

    @app.get("/session")
    async def session_snapshot(request: Request) -> SessionSnapshot:
        """Return the current session state."""
        return SessionSnapshot.from_controller(_controller(request))

    @app.get("/session/view", response_class=HTMLResponse)
    async def session_view(request: Request) -> HTMLResponse:
        """Render the current session state without resetting it."""
        controller = _controller(request)
        return HTMLResponse(
            render(controller.presentation, SessionSnapshot.from_controller(controller))
        )

    @app.post("/session/sign-in", status_code=status.HTTP_202_ACCEPTED)
    async def sign_in(
        payload: SignInRequest, request: Request, background_tasks: BackgroundTasks
    ) -> SessionSnapshot:
        """Send a verification email and wait for it in the background."""
        controller = _controller(request)
        try:
            await controller.begin_sign_in(payload.email)
        except (IdentityStateError, PipelineStateError) as exc:
            raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        except ValueError as exc:
            raise HTTPException(status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
        except (VerificationFailedError, VerificationCancelledError):
            logger.warning("Sign-in could not be started for %s", payload.email)
        else:
            background_tasks.add_task(controller.complete_sign_in)
        return SessionSnapshot.from_controller(controller)

    @app.post("/session/cancel")
    async def cancel_sign_in(request: Request) -> SessionSnapshot:
        """Cancel the outstanding verification wait."""
        controller = _controller(request)
        try:
            controller.cancel_sign_in()
        except IdentityStateError as exc:
            raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return SessionSnapshot.from_controller(controller)

    @app.post("/session/sign-out")
    async def sign_out(request: Request) -> SessionSnapshot:
        """Remove the stored identity."""
        controller = _controller(request)
        try:
            controller.sign_out()
        except (IdentityStateError, PipelineStateError) as exc:
            raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return SessionSnapshot.from_controller(controller)

    @app.post("/session/upload", status_code=status.HTTP_202_ACCEPTED)
    async def upload(
        request: Request, background_tasks: BackgroundTasks
    ) -> SessionSnapshot:
        """Start publishing the bundle; progress is reported by GET /session."""
        controller = _controller(request)
        try:
            controller.start_publish()
        except PipelineStateError as exc:
            raise HTTPException(status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        background_tasks.add_task(_run_upload, controller, logger)
        return SessionSnapshot.from_controller(controller)

    return app


def _open_session(container: AppContainer, client_id: str) -> SessionController:
    """Replace the client's previous page session with a fresh one."""
    previous = container.sessions.get(client_id)
    if previous is not None:
        # A running upload keeps its controller alive until it settles.
        if previous.session.pipeline_state is not PipelineState.RUNNING:
            previous.teardown()
    controller = build_session_controller(container, client_id)
    container.sessions[client_id] = controller
    return controller


def _controller(request: Request) -> SessionController:
    client_id = request.cookies.get(SESSION_COOKIE)
    sessions = request.app.state.container.sessions
    controller = sessions.get(client_id) if client_id else None
    if controller is None:
        raise HTTPException(
            status.HTTP_404_NOT_FOUND, detail="No active session; open the launch page"
        )
    return controller


async def _run_upload(controller: SessionController, logger: logging.Logger) -> None:
    """Run the upload, leaving failures on the session for the next poll."""
    try:
        await controller.run_publish()
    except Exception:
        logger.exception("Background upload failed")
