"""Pydantic models for the session API."""

from pydantic import BaseModel, Field

from art_publisher.domain.uploads import Scalar
from art_publisher.services.session import SessionController


class SignInRequest(BaseModel):
    """Email submitted from the sign-in form."""

    email: str = Field(min_length=1)


class SessionSnapshot(BaseModel):
    """Read-only view of a session consumed by the renderer."""

    state: str
    email: str | None = None
    did: str | None = None
    image_urls: list[str] = Field(default_factory=list)
    description: str | None = None
    parameters: dict[str, Scalar] = Field(default_factory=dict)
    input_error: str | None = None
    identity_error: str | None = None
    registration_error: str | None = None
    progress: float = 0.0
    progress_percent: int = 0
    root_address: str | None = None
    asset_count: int | None = None
    share_url: str | None = None
    upload_error: str | None = None

    @classmethod
    def from_controller(cls, controller: SessionController) -> "SessionSnapshot":
        """Capture the current session state."""
        session = controller.session
        upload_input = session.upload_input
        return cls(
            state=controller.presentation.value,
            email=session.email,
            did=session.identity.did if session.identity else None,
            image_urls=list(upload_input.image_urls) if upload_input else [],
            description=upload_input.description if upload_input else None,
            parameters=dict(upload_input.parameters) if upload_input else {},
            input_error=session.input_error,
            identity_error=session.identity_error,
            registration_error=session.registration_error,
            progress=session.progress,
            progress_percent=round(session.progress * 100),
            root_address=session.root_address,
            asset_count=session.result.asset_count if session.result else None,
            share_url=session.share_url,
            upload_error=session.upload_error,
        )
