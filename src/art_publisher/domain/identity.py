"""Domain models for identity acquisition."""

import asyncio
from dataclasses import dataclass, field
from enum import Enum


class IdentityState(Enum):
    """States of the identity acquisition flow."""

    UNAUTHENTICATED = "UNAUTHENTICATED"
    AWAITING_VERIFICATION = "AWAITING_VERIFICATION"
    REGISTERING = "REGISTERING"
    VERIFIED = "VERIFIED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"
    SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class Identity:
    """Opaque identity handle bound to an email address."""

    did: str
    email: str
    verified: bool = False
    delegation: str | None = None


@dataclass(frozen=True)
class VerificationProof:
    """Proof that the email owner confirmed the identity."""

    token: str


@dataclass(frozen=True)
class VerificationOutcome:
    """Result of a completed verification wait."""

    identity: Identity
    proof: VerificationProof


@dataclass
class VerificationAttempt:
    """A single outstanding verification wait."""

    email: str
    cancellation: asyncio.Event = field(default_factory=asyncio.Event)
    unverified_identity: Identity | None = None

    @property
    def cancelled(self) -> bool:
        """Return true once the attempt has been cancelled."""
        return self.cancellation.is_set()
