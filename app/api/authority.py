from dataclasses import dataclass, field
from typing import Any

import httpx

from app.credentials.exceptions import CredentialNetworkError
from app.logging.logger import Log


@dataclass(frozen=True)
class AuthorityResponse:
    """Raw answer of the external credential authority."""

    status_code: int
    reason: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


class CredentialAuthorityClient:
    """Forwards credential requests to the external issuing function."""

    def __init__(
        self,
        *,
        authority_url: str,
        timeout_seconds: float = 10,
        client: httpx.Client | None = None,
    ) -> None:
        self._authority_url = authority_url
        self._client = client if client is not None else httpx.Client(timeout=timeout_seconds)

    @property
    def configured(self) -> bool:
        return bool(self._authority_url)

    def issue(self, file_name: str) -> AuthorityResponse:
        """POST {fileName} to the authority.

        Raises:
            CredentialNetworkError: if the authority cannot be reached.
        """
        try:
            response = self._client.post(self._authority_url, json={"fileName": file_name})
        except httpx.HTTPError as exc:
            raise CredentialNetworkError(f"Credential authority unreachable: {exc}") from exc

        if not response.is_success:
            return AuthorityResponse(response.status_code, response.reason_phrase)

        data = response.json()
        Log.debug(f"Credential authority response: {data}")
        if not isinstance(data, dict):
            data = {}
        return AuthorityResponse(response.status_code, response.reason_phrase, data)
