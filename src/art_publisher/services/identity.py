"""Identity acquisition state machine for email-verified sign-in."""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass, field
from typing import Protocol, TypeVar

from art_publisher.adapters.access_client import IdentityClient
from art_publisher.config import RegistrationFailurePolicy
from art_publisher.domain.identity import (
    Identity,
    IdentityState,
    VerificationAttempt,
    VerificationOutcome,
    VerificationProof,
)
from art_publisher.domain.session import Session
from art_publisher.errors import (
    IdentityStateError,
    RegistrationFailedError,
    VerificationCancelledError,
    VerificationFailedError,
)

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdentityStore(Protocol):
    """Durable storage for the signed-in identity."""

    def persist(self, identity: Identity) -> None:
        """Store the identity as the default identity."""

    def erase(self, identity: Identity) -> None:
        """Remove a stored identity."""

    def load_persisted(self) -> Identity | None:
        """Return the stored default identity, if present."""


@dataclass
class IdentityAcquisition:
    """State machine turning an email address into a verified, stored identity.

    Writes ``identity`` and ``email`` on the shared session. Only one
    verification attempt may be outstanding at a time; a cancelled attempt
    never reaches ``register`` or ``persist``.
    """

    client: IdentityClient
    store: IdentityStore
    session: Session
    registration_policy: RegistrationFailurePolicy = RegistrationFailurePolicy.CONFIRM
    state: IdentityState = IdentityState.UNAUTHENTICATED
    _attempt: VerificationAttempt | None = field(default=None, repr=False)
    _generation: int = field(default=0, repr=False)

    @property
    def attempt_outstanding(self) -> bool:
        """Return true while a verification attempt is pending."""
        return self._attempt is not None

    def restore(self) -> Identity | None:
        """Adopt a previously stored identity, if one exists."""
        if self.state is not IdentityState.UNAUTHENTICATED:
            raise IdentityStateError(f"Cannot restore identity from {self.state.value}")
        identity = self.store.load_persisted()
        if identity is None:
            _logger.info("No identity registered")
            return None
        self.session.identity = identity
        self.session.email = identity.email
        self.state = IdentityState.VERIFIED
        _logger.info("Restored identity DID: %s", identity.did)
        return identity

    async def begin(self, email: str) -> Identity:
        """Create an unverified identity and send its verification email."""
        cleaned = email.strip()
        if not cleaned:
            raise ValueError("An email address is required")
        if self._attempt is not None:
            raise IdentityStateError("A verification attempt is already outstanding")
        if self.state not in {IdentityState.UNAUTHENTICATED, IdentityState.FAILED}:
            raise IdentityStateError(f"Cannot begin sign-in from {self.state.value}")

        attempt = VerificationAttempt(email=cleaned)
        self._attempt = attempt
        self.session.email = cleaned
        self.session.identity_error = None
        self.session.registration_error = None
        self.state = IdentityState.AWAITING_VERIFICATION
        try:
            unverified = await self.client.create_unverified_identity(cleaned)
            self._ensure_not_cancelled(attempt)
            attempt.unverified_identity = unverified
            _logger.info("Created unverified identity DID: %s", unverified.did)
            await self.client.dispatch_verification(unverified)
            self._ensure_not_cancelled(attempt)
        except VerificationCancelledError:
            raise
        except Exception as exc:
            if attempt.cancelled:
                raise VerificationCancelledError("Sign-in cancelled") from exc
            self._fail(attempt, f"Could not send verification email: {exc}")
            raise VerificationFailedError(
                f"Could not start verification: {exc}"
            ) from exc
        return unverified

    async def await_verification(self) -> VerificationOutcome:
        """Wait for the out-of-band verification of the outstanding attempt."""
        attempt = self._attempt
        if (
            attempt is None
            or attempt.unverified_identity is None
            or self.state is not IdentityState.AWAITING_VERIFICATION
        ):
            raise IdentityStateError("No verification attempt is outstanding")
        unverified = attempt.unverified_identity
        try:
            outcome = await _until_cancelled(
                self.client.await_verification(unverified, attempt.cancellation),
                attempt.cancellation,
            )
        except VerificationCancelledError:
            _logger.info("Verification wait cancelled for DID: %s", unverified.did)
            raise
        except Exception as exc:
            if attempt.cancelled:
                raise VerificationCancelledError("Sign-in cancelled") from exc
            _logger.error("Verification failed for DID %s: %s", unverified.did, exc)
            self._fail(attempt, str(exc))
            if isinstance(exc, VerificationFailedError):
                raise
            raise VerificationFailedError(str(exc)) from exc

        self._ensure_not_cancelled(attempt)
        self._attempt = None
        self.state = IdentityState.REGISTERING
        return outcome

    async def complete_registration(
        self, identity: Identity, proof: VerificationProof
    ) -> Identity | None:
        """Register and store a verified identity.

        Returns None when the session was reset while registering.
        """
        if self.state is not IdentityState.REGISTERING:
            raise IdentityStateError(f"Cannot register from {self.state.value}")
        generation = self._generation
        try:
            await self.client.register(identity, proof)
            if generation != self._generation:
                return None
            self.store.persist(identity)
        except Exception as exc:
            _logger.exception("Registration failed for DID: %s", identity.did)
            if generation != self._generation:
                return None
            if self.registration_policy is RegistrationFailurePolicy.BLOCK:
                self._fail(None, f"Registration failed: {exc}")
                raise RegistrationFailedError(
                    f"Registration failed for {identity.did}"
                ) from exc
            self.session.registration_error = str(exc) or type(exc).__name__
        if generation != self._generation:
            return None
        self.session.identity = identity
        self.state = IdentityState.VERIFIED
        _logger.info("Identity verified DID: %s", identity.did)
        return identity

    async def sign_in(self, email: str) -> Identity | None:
        """Run begin, verification and registration in sequence."""
        await self.begin(email)
        return await self.finish_sign_in()

    async def finish_sign_in(self) -> Identity | None:
        """Wait for verification of the outstanding attempt and register."""
        outcome = await self.await_verification()
        return await self.complete_registration(outcome.identity, outcome.proof)

    def cancel(self) -> None:
        """Abort the outstanding verification wait."""
        attempt = self._attempt
        if attempt is None or self.state is not IdentityState.AWAITING_VERIFICATION:
            raise IdentityStateError("No verification wait to cancel")
        attempt.cancellation.set()
        self._attempt = None
        self.state = IdentityState.CANCELLED
        _logger.info("Sign-in cancelled for %s", attempt.email)

    def sign_out(self) -> None:
        """Erase the stored identity; the session must be reset afterwards."""
        identity = self.session.identity
        if self.state is not IdentityState.VERIFIED or identity is None:
            raise IdentityStateError(f"Cannot sign out from {self.state.value}")
        self.store.erase(identity)
        self.session.identity = None
        self.session.email = None
        self.state = IdentityState.SIGNED_OUT
        _logger.info("Signed out DID: %s", identity.did)

    def reset(self) -> None:
        """Tear down to a fresh unauthenticated state."""
        if self._attempt is not None:
            self._attempt.cancellation.set()
        self._attempt = None
        self._generation += 1
        self.session.identity = None
        self.session.email = None
        self.session.identity_error = None
        self.session.registration_error = None
        self.state = IdentityState.UNAUTHENTICATED

    def _ensure_not_cancelled(self, attempt: VerificationAttempt) -> None:
        if attempt.cancelled:
            raise VerificationCancelledError("Sign-in cancelled")

    def _fail(self, attempt: VerificationAttempt | None, message: str) -> None:
        if attempt is not None and attempt is not self._attempt:
            return
        self._attempt = None
        self.session.email = None
        self.session.identity_error = message
        self.state = IdentityState.FAILED


async def _until_cancelled(work: Awaitable[T], cancellation: asyncio.Event) -> T:
    """Await work, abandoning it as soon as the cancellation event fires."""
    work_task = asyncio.ensure_future(work)
    watcher = asyncio.create_task(cancellation.wait())
    try:
        await asyncio.wait({work_task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work_task.done():
            work_task.cancel()
    if cancellation.is_set():
        if work_task.done() and not work_task.cancelled():
            work_task.exception()
        raise VerificationCancelledError("Sign-in cancelled")
    return work_task.result()
