"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from supabase import create_client

from art_publisher.adapters.access_client import HttpxAccessClient, IdentityClient
from art_publisher.adapters.asset_fetcher import HttpxAssetFetcher
from art_publisher.adapters.dag_encoder import DagEncoder
from art_publisher.adapters.supabase_identity_store import SupabaseIdentityStore
from art_publisher.adapters.upload_client import HttpxUploadClient
from art_publisher.config import (
    RegistrationFailurePolicy,
    Settings,
    parse_registration_policy,
)
from art_publisher.domain.session import Session
from art_publisher.services.identity import IdentityAcquisition, IdentityStore
from art_publisher.services.pipeline import UploadPipeline
from art_publisher.services.session import SessionController


@dataclass
class AppContainer:
    """Holds application-wide dependencies and the live sessions per client."""

    settings: Settings
    identity_client: IdentityClient
    identity_store_for: Callable[[str], IdentityStore]
    upload_pipeline: UploadPipeline
    registration_policy: RegistrationFailurePolicy
    close_resources: Callable[[], Awaitable[None]]
    sessions: dict[str, SessionController] = field(default_factory=dict)


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    access_client = HttpxAccessClient.create(
        resolved_settings.access_service_url,
        poll_interval_seconds=resolved_settings.verification_poll_interval_seconds,
        timeout_seconds=resolved_settings.verification_timeout_seconds,
    )
    asset_fetcher = HttpxAssetFetcher.create(resolved_settings.fetch_timeout_seconds)
    upload_client = HttpxUploadClient.create(resolved_settings.upload_service_url)
    upload_pipeline = UploadPipeline(
        asset_fetcher=asset_fetcher,
        encoder=DagEncoder(
            max_block_size=resolved_settings.max_block_size_bytes,
            chunk_size=resolved_settings.chunk_size_bytes,
        ),
        uploader=upload_client,
        max_concurrent_fetches=resolved_settings.max_concurrent_fetches,
    )

    def identity_store_for(client_id: str) -> IdentityStore:
        return SupabaseIdentityStore(client=supabase_client, client_id=client_id)

    async def close_resources() -> None:
        await access_client.close()
        await asset_fetcher.close()
        await upload_client.close()

    return AppContainer(
        settings=resolved_settings,
        identity_client=access_client,
        identity_store_for=identity_store_for,
        upload_pipeline=upload_pipeline,
        registration_policy=parse_registration_policy(
            resolved_settings.registration_failure_policy
        ),
        close_resources=close_resources,
    )


def build_session_controller(
    container: AppContainer, client_id: str
) -> SessionController:
    """Create a fresh session controller for one page lifetime of a client."""
    session = Session()
    identity = IdentityAcquisition(
        client=container.identity_client,
        store=container.identity_store_for(client_id),
        session=session,
        registration_policy=container.registration_policy,
    )
    return SessionController(
        session=session,
        identity=identity,
        pipeline=container.upload_pipeline,
        gateway_origin=container.settings.gateway_origin,
    )
