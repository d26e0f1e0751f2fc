"""Domain model for the single publishing session."""

from dataclasses import dataclass
from enum import Enum

from art_publisher.domain.identity import Identity
from art_publisher.domain.uploads import UploadInput, UploadResult


class InputStatus(Enum):
    """Outcome of launch input validation."""

    MISSING = "MISSING"
    MALFORMED = "MALFORMED"
    VALID = "VALID"


class PipelineState(Enum):
    """Lifecycle of the upload pipeline within a session."""

    IDLE = "IDLE"
    RUNNING = "RUNNING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"


@dataclass
class Session:
    """Mutable state shared by the identity flow and the upload pipeline."""

    identity: Identity | None = None
    email: str | None = None
    input_status: InputStatus = InputStatus.MISSING
    input_error: str | None = None
    upload_input: UploadInput | None = None
    pipeline_state: PipelineState = PipelineState.IDLE
    progress: float = 0.0
    result: UploadResult | None = None
    share_url: str | None = None
    identity_error: str | None = None
    registration_error: str | None = None
    upload_error: str | None = None

    @property
    def root_address(self) -> str | None:
        """Return the published bundle root, once available."""
        return self.result.root_address if self.result else None

    def record_result(self, result: UploadResult, gateway_origin: str) -> None:
        """Store the upload result and derive the share link. Set once."""
        if self.result is not None:
            raise ValueError("Upload result already recorded for this session")
        self.result = result
        self.share_url = share_url(gateway_origin, result.root_address)


def share_url(gateway_origin: str, root_address: str) -> str:
    """Combine the gateway origin with a content address."""
    return f"{gateway_origin.rstrip('/')}/{root_address}"
