"""Identity access service client."""

import asyncio
from dataclasses import dataclass, replace
from typing import Protocol

import httpx

from art_publisher.domain.identity import (
    Identity,
    VerificationOutcome,
    VerificationProof,
)
from art_publisher.errors import (
    RegistrationFailedError,
    VerificationCancelledError,
    VerificationFailedError,
)


class IdentityClient(Protocol):
    """Interface for creating, verifying and registering identities."""

    async def create_unverified_identity(self, email: str) -> Identity:
        """Create an identity bound to an email that is not yet verified."""

    async def dispatch_verification(self, identity: Identity) -> None:
        """Send the verification email for an identity."""

    async def await_verification(
        self, identity: Identity, cancellation: asyncio.Event
    ) -> VerificationOutcome:
        """Wait until the email owner verifies the identity."""

    async def register(self, identity: Identity, proof: VerificationProof) -> None:
        """Register a verified identity with the directory."""


@dataclass
class HttpxAccessClient(IdentityClient):
    """Access service client implemented with httpx."""

    base_url: str
    http_client: httpx.AsyncClient
    poll_interval_seconds: float = 2.0
    timeout_seconds: float = 900

    @classmethod
    def create(
        cls,
        base_url: str,
        poll_interval_seconds: float = 2.0,
        timeout_seconds: float = 900,
    ) -> "HttpxAccessClient":
        """Create an access client with a managed httpx session."""
        return cls(
            base_url=base_url,
            http_client=httpx.AsyncClient(),
            poll_interval_seconds=poll_interval_seconds,
            timeout_seconds=timeout_seconds,
        )

    async def create_unverified_identity(self, email: str) -> Identity:
        """Create an identity via the access service."""
        response = await self.http_client.post(
            f"{self.base_url}/identities", json={"email": email}, timeout=10
        )
        response.raise_for_status()
        payload = response.json()
        return Identity(did=payload["did"], email=email)

    async def dispatch_verification(self, identity: Identity) -> None:
        """Ask the access service to email a verification link."""
        response = await self.http_client.post(
            f"{self.base_url}/identities/{identity.did}/verification",
            json={"email": identity.email},
            timeout=10,
        )
        response.raise_for_status()

    async def await_verification(
        self, identity: Identity, cancellation: asyncio.Event
    ) -> VerificationOutcome:
        """Poll the verification status until verified, denied or timed out."""
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.timeout_seconds
        url = f"{self.base_url}/identities/{identity.did}/verification"
        while True:
            if cancellation.is_set():
                raise VerificationCancelledError(
                    f"Verification cancelled: {identity.did}"
                )
            try:
                response = await self.http_client.get(url, timeout=10)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise VerificationFailedError(
                    f"Verification status check failed for {identity.did}: {exc}"
                ) from exc
            payload = response.json()
            status = payload.get("status")
            if status == "verified":
                verified = replace(
                    identity, verified=True, delegation=payload.get("delegation")
                )
                return VerificationOutcome(
                    identity=verified,
                    proof=VerificationProof(token=str(payload["proof"])),
                )
            if status == "denied":
                raise VerificationFailedError(f"Verification denied for {identity.did}")
            remaining = deadline - loop.time()
            if remaining <= 0:
                raise VerificationFailedError(
                    f"Verification timed out for {identity.did}"
                )
            try:
                await asyncio.wait_for(
                    cancellation.wait(),
                    timeout=min(self.poll_interval_seconds, remaining),
                )
            except TimeoutError:
                continue

    async def register(self, identity: Identity, proof: VerificationProof) -> None:
        """Register the identity using its verification proof."""
        try:
            response = await self.http_client.post(
                f"{self.base_url}/identities/{identity.did}/registration",
                json={"proof": proof.token},
                timeout=10,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise RegistrationFailedError(
                f"Registration failed for {identity.did}: {exc}"
            ) from exc

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
