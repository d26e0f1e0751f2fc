"""Exception hierarchy for the publishing flow."""


class ArtPublisherError(Exception):
    """Base exception for the art publisher."""


class InputMissingError(ArtPublisherError):
    """Raised when no launch parameters were supplied at all."""


class InputMalformedError(ArtPublisherError):
    """Raised when launch parameters are present but unusable."""


class IdentityStateError(ArtPublisherError):
    """Raised when an identity operation is not valid in the current state."""


class VerificationFailedError(ArtPublisherError):
    """Raised when email verification is denied, times out, or errors."""


class VerificationCancelledError(ArtPublisherError):
    """Raised when a pending verification wait is cancelled."""


class RegistrationFailedError(ArtPublisherError):
    """Raised when a verified identity cannot be registered or stored."""


class AssetFetchFailedError(ArtPublisherError):
    """Raised when a single image cannot be fetched or encoded."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class TransportError(ArtPublisherError):
    """Raised when chunk upload to the storage network fails."""


class PipelineStateError(ArtPublisherError):
    """Raised when an upload is requested in an invalid session state."""
