"""HTTP client for the remote key-value and image endpoint."""

import json
import logging
from typing import Any, List, Optional

import httpx

from shared.config import get_remote_storage_config
from shared.errors import NetworkFailure, RemoteRejected, RemoteTimeout
from shared.models import ImageAsset

logger = logging.getLogger(__name__)


class RemoteStorageClient:
    """Talks to the serverless KV endpoint. Every request carries a bearer credential."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: float = 60.0,
        upload_timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize the remote storage client.

        Args:
            base_url: Endpoint root, e.g. https://host/functions/v1/server
            api_key: Bearer credential sent with every request
            timeout: Seconds allowed for data requests
            upload_timeout: Seconds allowed for image uploads
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.upload_timeout = upload_timeout
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_key}", "Accept": "application/json"},
            timeout=timeout,
            transport=transport
        )

    @classmethod
    def from_env(cls) -> Optional["RemoteStorageClient"]:
        """Build a client from environment, or None when remote storage is not configured."""
        config = get_remote_storage_config()
        if not config["enabled"]:
            return None
        return cls(
            base_url=config["base_url"],
            api_key=config["api_key"],
            timeout=config["timeout"],
            upload_timeout=config["upload_timeout"]
        )

    async def aclose(self):
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self.client.request(method, path, **kwargs)
        except httpx.TimeoutException as e:
            raise RemoteTimeout(f"{method} {path} timed out: {e}") from e
        except httpx.DecodingError as e:
            raise RemoteRejected(f"{method} {path} returned an undecodable body: {e}") from e
        except httpx.RequestError as e:
            raise NetworkFailure(f"{method} {path} failed: {e}") from e

        if response.status_code < 200 or response.status_code >= 300:
            raise RemoteRejected(
                f"{method} {path} returned {response.status_code}: {response.text[:500]}",
                status_code=response.status_code
            )
        return response

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        text = response.text
        if text.lstrip().startswith("<"):
            raise RemoteRejected("Server returned HTML instead of JSON", response.status_code)
        try:
            return json.loads(text)
        except ValueError as e:
            raise RemoteRejected(f"Server returned non-JSON response: {text[:500]}",
                                 response.status_code) from e

    async def upload_image(self, asset: ImageAsset) -> str:
        """
        Upload an image as multipart form data.

        Args:
            asset: Image to upload

        Returns:
            URL the image can later be fetched from
        """
        logger.info(f"Attempting remote upload: {asset.name} ({asset.size / 1024 / 1024:.1f}MB)")
        response = await self._request(
            "POST",
            "/upload-image",
            files={"file": (asset.name, asset.data, asset.content_type)},
            timeout=self.upload_timeout
        )
        result = self._json(response)
        url = result.get("url") if isinstance(result, dict) else None
        if not url:
            raise RemoteRejected(f"No URL in upload response: {result}", response.status_code)

        logger.info(f"Remote upload successful ({result.get('storage', 'server')}): {url}")
        return url

    async def save_data(self, key: str, data: Any) -> None:
        response = await self._request("POST", "/save-data", json={"key": key, "data": data})
        result = self._json(response)
        if not isinstance(result, dict) or not result.get("success"):
            raise RemoteRejected(f"Save of {key} not acknowledged: {result}", response.status_code)

    async def get_data(self, key: str) -> Any:
        """Fetch a document. Returns None when the server has no value for key."""
        response = await self._request("GET", f"/get-data/{key}")
        result = self._json(response)
        if not isinstance(result, dict) or "data" not in result:
            raise RemoteRejected(f"Malformed get-data response: {result}", response.status_code)
        return result["data"]

    async def get_image(self, file_name: str) -> bytes:
        response = await self._request("GET", f"/get-image/{file_name}")
        return response.content

    async def get_data_by_prefix(self, prefix: str) -> List[dict]:
        response = await self._request("GET", f"/get-data-by-prefix/{prefix}")
        result = self._json(response)
        if not isinstance(result, dict) or "results" not in result:
            raise RemoteRejected(f"Malformed prefix response: {result}", response.status_code)
        return result["results"]

    async def delete_data(self, key: str) -> None:
        await self._request("DELETE", f"/delete-data/{key}")
