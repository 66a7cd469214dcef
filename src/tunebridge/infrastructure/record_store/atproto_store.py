"""AT Protocol durable record store (XRPC over httpx).

Hey future me - records live in the configured account's repo under the
`media.tunebridge.lookup.result` collection. A pointer is the record's at:// URI:

    at://<did>/<collection>/<rkey>

XRPC calls used:
- com.atproto.server.createSession  (identifier + app password -> accessJwt, did)
- com.atproto.repo.createRecord     (new record, server picks the rkey)
- com.atproto.repo.getRecord        (read; missing records come back as 400 RecordNotFound)
- com.atproto.repo.putRecord        (overwrite in place, pointer stays the same)

We only write into OUR OWN repo. A pointer into anyone else's repo (or another
collection) can still be read, but update() refuses it and the cache coordinator
creates a fresh record instead.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, cast

import httpx

from tunebridge.config import RecordStoreSettings
from tunebridge.domain.entities import DurableRecord
from tunebridge.domain.exceptions import (
    ConfigurationError,
    RecordStoreError,
    RecordStoreInconsistencyError,
)
from tunebridge.domain.ports import IRecordStore

logger = logging.getLogger(__name__)

AT_URI_SCHEME = "at://"


@dataclass(frozen=True)
class AtUri:
    """Parsed at://<repo>/<collection>/<rkey> URI."""

    repo: str
    collection: str
    rkey: str

    @classmethod
    def parse(cls, pointer: str) -> "AtUri":
        """Parse an at:// URI.

        Raises:
            RecordStoreInconsistencyError: If pointer isn't a record URI
        """
        if not pointer.startswith(AT_URI_SCHEME):
            raise RecordStoreInconsistencyError(pointer, "not an at:// URI")
        parts = pointer[len(AT_URI_SCHEME) :].split("/")
        if len(parts) != 3 or not all(parts):
            raise RecordStoreInconsistencyError(pointer, "expected at://repo/collection/rkey")
        return cls(repo=parts[0], collection=parts[1], rkey=parts[2])

    def __str__(self) -> str:
        return f"{AT_URI_SCHEME}{self.repo}/{self.collection}/{self.rkey}"


class AtProtoRecordStore(IRecordStore):
    """Stores DurableRecords as AT Protocol repo records."""

    def __init__(
        self,
        settings: RecordStoreSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize store.

        Args:
            settings: PDS url, account identifier, app password and collection
            transport: Optional httpx transport (tests pass httpx.MockTransport)
        """
        self.settings = settings
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._access_jwt: str | None = None
        self._did: str | None = None
        self._session_lock = asyncio.Lock()

    @property
    def collection(self) -> str:
        return self.settings.collection

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.pds_url.rstrip("/"),
                timeout=15.0,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # =========================================================================
    # SESSION
    # =========================================================================

    async def _ensure_session(self, force: bool = False) -> tuple[str, str]:
        """Return (accessJwt, did), logging in when needed.

        Raises:
            ConfigurationError: If no identifier/app password is configured
            RecordStoreError: If the PDS rejects the login
        """
        if not self.settings.identifier or not self.settings.app_password:
            raise ConfigurationError("AT Protocol identifier/app password not configured")

        async with self._session_lock:
            if not force and self._access_jwt and self._did:
                return self._access_jwt, self._did

            client = await self._get_client()
            try:
                response = await client.post(
                    "/xrpc/com.atproto.server.createSession",
                    json={
                        "identifier": self.settings.identifier,
                        "password": self.settings.app_password,
                    },
                )
            except httpx.HTTPError as e:
                raise RecordStoreError(f"PDS unreachable: {e}") from e

            if response.status_code != 200:
                raise RecordStoreError(
                    f"PDS rejected login for {self.settings.identifier}: HTTP {response.status_code}"
                )

            payload = response.json()
            self._access_jwt = cast(str, payload["accessJwt"])
            self._did = cast(str, payload["did"])
            logger.info("Logged in to PDS as %s", self._did)
            return self._access_jwt, self._did

    # Hey future me - ALL XRPC calls go through here. Access tokens are short-lived:
    # an ExpiredToken/401 forces a new session once, then we give up.
    async def _xrpc(
        self,
        method: str,
        nsid: str,
        params: dict[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> httpx.Response:
        client = await self._get_client()
        force = False
        for attempt in range(2):
            token, _ = await self._ensure_session(force=force)
            try:
                response = await client.request(
                    method,
                    f"/xrpc/{nsid}",
                    params=params,
                    json=body,
                    headers={"Authorization": f"Bearer {token}"},
                )
            except httpx.HTTPError as e:
                raise RecordStoreError(f"{nsid} failed: {e}") from e

            if attempt == 0 and _is_expired_token(response):
                logger.debug("PDS session expired, logging in again")
                force = True
                continue
            return response

        return response

    # =========================================================================
    # IRecordStore
    # =========================================================================

    async def create(self, record: DurableRecord) -> str:
        _, did = await self._ensure_session()
        response = await self._xrpc(
            "POST",
            "com.atproto.repo.createRecord",
            body={
                "repo": did,
                "collection": self.collection,
                "record": self._to_value(record),
            },
        )
        if response.status_code != 200:
            raise RecordStoreError(f"createRecord failed: HTTP {response.status_code}")

        pointer = cast(str, response.json()["uri"])
        logger.debug("Created record %s", pointer)
        return pointer

    async def read(self, pointer: str) -> DurableRecord | None:
        uri = AtUri.parse(pointer)
        response = await self._xrpc(
            "GET",
            "com.atproto.repo.getRecord",
            params={"repo": uri.repo, "collection": uri.collection, "rkey": uri.rkey},
        )
        if response.status_code in (400, 404) and _error_name(response) in (
            "RecordNotFound",
            None,
        ):
            return None
        if response.status_code != 200:
            raise RecordStoreError(f"getRecord {pointer} failed: HTTP {response.status_code}")

        try:
            value = response.json()["value"]
            return DurableRecord.from_dict(value)
        except (KeyError, TypeError, ValueError) as e:
            raise RecordStoreInconsistencyError(pointer, str(e)) from e

    async def update(self, pointer: str, record: DurableRecord) -> bool:
        try:
            uri = AtUri.parse(pointer)
        except RecordStoreInconsistencyError:
            return False

        _, did = await self._ensure_session()
        if uri.repo != did or uri.collection != self.collection:
            logger.debug("Not overwriting foreign record %s", pointer)
            return False

        response = await self._xrpc(
            "POST",
            "com.atproto.repo.putRecord",
            body={
                "repo": did,
                "collection": self.collection,
                "rkey": uri.rkey,
                "record": self._to_value(record),
            },
        )
        if response.status_code == 200:
            return True
        if response.status_code == 400 and _error_name(response) == "RecordNotFound":
            return False
        raise RecordStoreError(f"putRecord {pointer} failed: HTTP {response.status_code}")

    def _to_value(self, record: DurableRecord) -> dict[str, Any]:
        return {"$type": self.collection, **record.to_dict()}


def _error_name(response: httpx.Response) -> str | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        error = payload.get("error")
        return error if isinstance(error, str) else None
    return None


def _is_expired_token(response: httpx.Response) -> bool:
    if response.status_code == 401:
        return True
    return response.status_code == 400 and _error_name(response) == "ExpiredToken"
