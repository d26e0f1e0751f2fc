"""Supabase-backed identity store."""

from dataclasses import dataclass
from datetime import UTC, datetime

from supabase import Client

from art_publisher.domain.identity import Identity
from art_publisher.services.identity import IdentityStore


@dataclass
class SupabaseIdentityStore(IdentityStore):
    """Supabase implementation for durable identity storage.

    Rows are scoped to one browser client; a client never sees
    identities stored by another.
    """

    client: Client
    client_id: str

    def persist(self, identity: Identity) -> None:
        """Insert or replace the stored identity row for this client."""
        self.client.table("identities").upsert(
            {
                "client_id": self.client_id,
                "did": identity.did,
                "email": identity.email,
                "delegation": identity.delegation,
                "stored_at": datetime.now(tz=UTC).isoformat(),
            },
            on_conflict="client_id,did",
        ).execute()

    def erase(self, identity: Identity) -> None:
        """Delete this client's stored identity row."""
        (
            self.client.table("identities")
            .delete()
            .eq("client_id", self.client_id)
            .eq("did", identity.did)
            .execute()
        )

    def load_persisted(self) -> Identity | None:
        """Return the identity this client stored most recently, if any."""
        response = (
            self.client.table("identities")
            .select("did, email, delegation")
            .eq("client_id", self.client_id)
            .order("stored_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        row = response.data[0]
        return Identity(
            did=row["did"],
            email=row["email"],
            verified=True,
            delegation=row.get("delegation"),
        )
