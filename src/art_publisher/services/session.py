"""Session controller sequencing input validation, sign-in and upload."""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum

from art_publisher.domain.identity import Identity, IdentityState
from art_publisher.domain.session import InputStatus, PipelineState, Session
from art_publisher.domain.uploads import UploadResult
from art_publisher.errors import (
    IdentityStateError,
    InputMalformedError,
    InputMissingError,
    PipelineStateError,
    RegistrationFailedError,
    VerificationCancelledError,
    VerificationFailedError,
)
from art_publisher.services.identity import IdentityAcquisition
from art_publisher.services.launch import parse_launch_params
from art_publisher.services.pipeline import UploadPipeline
from art_publisher.services.progress import ProgressAggregator, ProgressListener

_logger = logging.getLogger(__name__)


class PresentationState(Enum):
    """Which view the host page should show."""

    EMPTY = "EMPTY"
    INPUT_ERROR = "INPUT_ERROR"
    SIGN_IN = "SIGN_IN"
    VERIFYING = "VERIFYING"
    REGISTERING = "REGISTERING"
    CANCELLED = "CANCELLED"
    CONFIRM_UPLOAD = "CONFIRM_UPLOAD"
    UPLOADING = "UPLOADING"
    UPLOADED = "UPLOADED"
    UPLOAD_FAILED = "UPLOAD_FAILED"
    SIGNED_OUT = "SIGNED_OUT"


_IDENTITY_VIEWS = {
    IdentityState.UNAUTHENTICATED: PresentationState.SIGN_IN,
    IdentityState.FAILED: PresentationState.SIGN_IN,
    IdentityState.AWAITING_VERIFICATION: PresentationState.VERIFYING,
    IdentityState.REGISTERING: PresentationState.REGISTERING,
    IdentityState.CANCELLED: PresentationState.CANCELLED,
    IdentityState.SIGNED_OUT: PresentationState.SIGNED_OUT,
}

_PIPELINE_VIEWS = {
    PipelineState.IDLE: PresentationState.CONFIRM_UPLOAD,
    PipelineState.RUNNING: PresentationState.UPLOADING,
    PipelineState.SUCCEEDED: PresentationState.UPLOADED,
    PipelineState.FAILED: PresentationState.UPLOAD_FAILED,
}


def presentation_state(
    input_status: InputStatus,
    identity_state: IdentityState,
    pipeline_state: PipelineState,
) -> PresentationState:
    """Derive the active view from input, identity and pipeline state."""
    if input_status is InputStatus.MISSING:
        return PresentationState.EMPTY
    if input_status is InputStatus.MALFORMED:
        return PresentationState.INPUT_ERROR
    if identity_state is IdentityState.VERIFIED:
        return _PIPELINE_VIEWS[pipeline_state]
    return _IDENTITY_VIEWS[identity_state]


@dataclass
class SessionController:
    """Owns one page-lifetime session and drives its two subsystems."""

    session: Session
    identity: IdentityAcquisition
    pipeline: UploadPipeline
    gateway_origin: str
    _listeners: list[ProgressListener] = field(default_factory=list, repr=False)

    @property
    def presentation(self) -> PresentationState:
        """Return the view implied by the current session state."""
        return presentation_state(
            self.session.input_status,
            self.identity.state,
            self.session.pipeline_state,
        )

    def activate(self, query: Mapping[str, str]) -> PresentationState:
        """Validate launch input and, when valid, restore a stored identity."""
        if self.load_input(query) is InputStatus.VALID:
            self.identity.restore()
        return self.presentation

    def load_input(self, query: Mapping[str, str]) -> InputStatus:
        """Validate launch parameters into the session's upload input."""
        try:
            upload_input = parse_launch_params(query)
        except InputMissingError:
            self._set_input(InputStatus.MISSING, None)
            _logger.info("No launch parameters supplied")
        except InputMalformedError as exc:
            self._set_input(InputStatus.MALFORMED, str(exc))
            _logger.warning("Rejected launch parameters: %s", exc)
        else:
            self.session.input_status = InputStatus.VALID
            self.session.input_error = None
            self.session.upload_input = upload_input
        return self.session.input_status

    async def begin_sign_in(self, email: str) -> Identity:
        """Start email verification for a session with valid input."""
        self._require_valid_input()
        return await self.identity.begin(email)

    async def complete_sign_in(self) -> Identity | None:
        """Finish the outstanding sign-in; failures are recorded on the session."""
        try:
            return await self.identity.finish_sign_in()
        except (VerificationCancelledError, IdentityStateError):
            # Cancelled, or reset before the wait began.
            return None
        except (VerificationFailedError, RegistrationFailedError) as exc:
            _logger.warning("Sign-in did not complete: %s", exc)
            return None

    async def sign_in(self, email: str) -> Identity | None:
        """Run the whole sign-in flow for an email address."""
        await self.begin_sign_in(email)
        return await self.complete_sign_in()

    def cancel_sign_in(self) -> None:
        """Cancel the outstanding verification wait."""
        self.identity.cancel()

    def sign_out(self) -> None:
        """Remove the stored identity unless an upload is in flight."""
        if self.session.pipeline_state is PipelineState.RUNNING:
            raise PipelineStateError("Cannot sign out while an upload is running")
        self.identity.sign_out()

    def subscribe(self, listener: ProgressListener) -> None:
        """Receive combined upload progress values."""
        self._listeners.append(listener)

    def start_publish(self) -> None:
        """Mark the upload as running for a fresh, signed-in session."""
        self._require_valid_input()
        if self.identity.state is not IdentityState.VERIFIED:
            raise PipelineStateError("Sign in before uploading")
        if self.session.pipeline_state is not PipelineState.IDLE:
            raise PipelineStateError(
                f"Upload already {self.session.pipeline_state.value.lower()}"
            )
        self.session.pipeline_state = PipelineState.RUNNING
        self.session.progress = 0.0
        self.session.upload_error = None

    async def run_publish(self) -> UploadResult:
        """Run the pipeline started by start_publish and record its result."""
        if self.session.pipeline_state is not PipelineState.RUNNING:
            raise PipelineStateError("Call start_publish before run_publish")
        identity = self.session.identity
        upload_input = self.session.upload_input
        if identity is None or upload_input is None:
            raise PipelineStateError("Session is missing its identity or input")

        aggregator = ProgressAggregator()
        aggregator.subscribe(self._on_progress)
        try:
            result = await self.pipeline.run(identity, upload_input, aggregator)
        except Exception as exc:
            self.session.pipeline_state = PipelineState.FAILED
            self.session.upload_error = str(exc) or type(exc).__name__
            _logger.error("Upload failed for DID %s: %s", identity.did, exc)
            raise
        self.session.record_result(result, self.gateway_origin)
        self.session.pipeline_state = PipelineState.SUCCEEDED
        _logger.info("Bundle available at %s", self.session.share_url)
        return result

    async def publish(self) -> UploadResult:
        """Start and run the upload in one call."""
        self.start_publish()
        return await self.run_publish()

    def teardown(self) -> None:
        """Reset the session to its freshly activated state."""
        if self.session.pipeline_state is PipelineState.RUNNING:
            raise PipelineStateError("Cannot tear down while an upload is running")
        self.identity.reset()
        session = self.session
        session.input_status = InputStatus.MISSING
        session.input_error = None
        session.upload_input = None
        session.pipeline_state = PipelineState.IDLE
        session.progress = 0.0
        session.result = None
        session.share_url = None
        session.upload_error = None

    def _on_progress(self, value: float) -> None:
        self.session.progress = value
        for listener in self._listeners:
            listener(value)

    def _require_valid_input(self) -> None:
        if self.session.input_status is not InputStatus.VALID:
            raise PipelineStateError("Launch input is missing or malformed")

    def _set_input(self, status: InputStatus, error: str | None) -> None:
        self.session.input_status = status
        self.session.input_error = error
        self.session.upload_input = None
