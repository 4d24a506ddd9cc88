"""REST object store for the appliance management API.

All paths are relative to ``https://<host>:<port>/mgmt``. Item paths use the
``~partition~name`` form. Transactions are opened, populated with the
coordination header and committed by moving them to VALIDATING.
"""
import logging
from typing import Any, Optional

import httpx

from ..constants import COMMON, PATHS, item_path
from ..engine.schema import OperationMethod, TransactionCommand
from ..errors import ConflictError, TransientError, error_for_status
from .base import ApplianceConfig, ObjectStore

logger = logging.getLogger(__name__)

TRANSACTION_HEADER = "X-F5-REST-Coordination-Id"

HTTP_METHODS = {
    OperationMethod.CREATE: "POST",
    OperationMethod.MODIFY: "PATCH",
    OperationMethod.DELETE: "DELETE",
}


class RestObjectStore(ObjectStore):
    """Object store backed by the appliance's REST API."""

    def __init__(
        self,
        config: ApplianceConfig,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(config.name)
        self.config = config
        self._base_url = f"https://{config.host}:{config.port}/mgmt"
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                auth=httpx.BasicAuth(self.config.username, self.config.get_password()),
                verify=self.config.verify_ssl,
                timeout=self.config.timeout,
                headers={"Content-Type": "application/json"},
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        body: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """Send one request and map failures to StoreError subclasses."""
        try:
            response = await self.client.request(
                method, path, json=body, headers=headers
            )
        except httpx.TimeoutException as e:
            raise TransientError(f"{method} {path} timed out: {e}", path=path) from e
        except httpx.TransportError as e:
            raise TransientError(f"{method} {path} failed: {e}", path=path) from e

        if response.status_code >= 400:
            raise error_for_status(
                response.status_code, _error_message(response), path=path
            )

        if not response.content:
            return None
        return response.json()

    async def _create(self, path: str, body: dict) -> Any:
        return await self._request("POST", path, body)

    async def _modify(self, path: str, body: dict) -> Any:
        return await self._request("PATCH", path, body)

    async def _create_or_modify(self, path: str, body: dict) -> Any:
        name = body["name"]
        if "partition" in body:
            target = item_path(path, name, body["partition"])
        else:
            target = f"{path}/{name}"

        if await self.exists(target):
            return await self._request("PATCH", target, body)
        return await self._request("POST", path, body)

    async def _delete(self, path: str) -> Any:
        return await self._request("DELETE", path)

    async def _list(self, path: str) -> Any:
        response = await self._request("GET", path)
        if not isinstance(response, dict):
            return response
        if "items" in response:
            return response["items"]
        if response.get("kind", "").endswith("collectionstate"):
            return []
        return response

    async def _transaction(self, commands: list[TransactionCommand]) -> Any:
        if not commands:
            return None

        opened = await self._request("POST", PATHS["Transaction"], {})
        transaction_id = str(opened["transId"])
        headers = {TRANSACTION_HEADER: transaction_id}
        logger.debug(f"Opened transaction {transaction_id} ({len(commands)} commands)")

        for command in commands:
            await self._request(
                HTTP_METHODS[command.method], command.path, command.body, headers
            )

        result = await self._request(
            "PATCH",
            f"{PATHS['Transaction']}/{transaction_id}",
            {"state": "VALIDATING"},
        )
        if result and result.get("state") == "FAILED":
            raise ConflictError(
                f"Transaction {transaction_id} failed: {result.get('failureReason', '')}",
                status_code=400,
                path=PATHS["Transaction"],
            )
        return result

    async def _config_sync_ip(self, address: str) -> Any:
        return await self._modify_local_device({"configsyncIp": address})

    async def _modify_local_device(self, body: dict) -> Any:
        devices = await self._list(PATHS["Device"])
        local = next(
            (d for d in devices or [] if str(d.get("selfDevice")).lower() == "true"),
            None,
        )
        if local is None:
            raise ConflictError(
                "Unable to find the local device entry", path=PATHS["Device"]
            )
        path = item_path(PATHS["Device"], local["name"], local.get("partition", COMMON))
        return await self._request("PATCH", path, body)


def _error_message(response: httpx.Response) -> str:
    """Pull the appliance's error message out of a failed response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return response.text or f"HTTP {response.status_code}"
