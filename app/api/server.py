from fastapi import FastAPI

from app.api.authority import CredentialAuthorityClient
from app.api.routes import router
from app.config.settings import Settings
from app.transfer.base import BaseTransferAgent
from app.transfer.httpx_agent import HttpxTransferAgent


def create_app(
    settings: Settings,
    *,
    authority_client: CredentialAuthorityClient | None = None,
    transfer_agent: BaseTransferAgent | None = None,
) -> FastAPI:
    """Build the proxy API with its outbound clients attached to app.state."""
    app = FastAPI(title="KML Upload Proxy", version="0.1.0")
    app.state.settings = settings
    app.state.authority_client = authority_client or CredentialAuthorityClient(
        authority_url=settings.credential_authority_url,
        timeout_seconds=settings.credential_authority_timeout_seconds,
    )
    app.state.transfer_agent = transfer_agent or HttpxTransferAgent(
        timeout_seconds=settings.transfer_timeout_seconds,
        chunk_size=settings.transfer_chunk_size_bytes,
    )
    app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app
