"""Async client for the Huly platform's REST transactor and collaborator services."""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping
from urllib.parse import quote

import httpx
from httpx import Response

from account_client import AccountClient, is_auth_status
from huly_config import ConfigError, HulyConfig, load_config
from huly_errors import HulyAuthError, HulyConnectionError, HulyError
from huly_markup import markdown_to_markup, markup_to_markdown

logger = logging.getLogger(__name__)

__all__ = [
    "FindResult",
    "HulyClient",
    "close_huly_client",
    "generate_id",
    "get_huly_client",
]

CONNECT_ATTEMPTS = 3
CONNECT_BACKOFF_SECONDS = 0.1


def generate_id() -> str:
    return f"{int(time.time()):08x}{secrets.token_hex(8)}"


def _safe_json(response: Response) -> Any | None:
    try:
        return response.json()
    except ValueError:  # pragma: no cover - non-JSON body
        text = response.text
        return text if text else None


def _to_http(endpoint: str) -> str:
    if endpoint.startswith("wss://"):
        return "https://" + endpoint[len("wss://") :]
    if endpoint.startswith("ws://"):
        return "http://" + endpoint[len("ws://") :]
    return endpoint


class FindResult(list):
    """List of documents that also carries the server side total."""

    def __init__(self, items: Iterable[dict[str, Any]] = (), total: int | None = None) -> None:
        super().__init__(items)
        self.total = len(self) if total is None or total < 0 else total


def _resolve_lookups(docs: list[dict[str, Any]], lookup_map: Mapping[str, Any]) -> None:
    for doc in docs:
        lookups = doc.get("$lookup")
        if not isinstance(lookups, dict):
            continue
        for key, value in list(lookups.items()):
            if isinstance(value, list):
                lookups[key] = [lookup_map.get(item, item) if isinstance(item, str) else item for item in value]
            elif isinstance(value, str):
                lookups[key] = lookup_map.get(value)


class HulyClient:
    """Thin async wrapper around one Huly workspace.

    Reads go through ``find-all``, writes are posted as transactions, and rich
    text is stored through the collaborator service.
    """

    def __init__(self, config: HulyConfig, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._config = config
        self._http = httpx.AsyncClient(
            timeout=config.timeout_seconds,
            headers={"Accept": "application/json"},
            transport=transport,
        )
        self._endpoint: str | None = None
        self._workspace_id: str | None = None
        self._token: str | None = None
        self._social_id: str | None = None
        self._collaborator_url: str | None = None
        self.account: AccountClient | None = None

    @property
    def connected(self) -> bool:
        return self._endpoint is not None

    @property
    def workspace_id(self) -> str:
        if self._workspace_id is None:
            raise HulyConnectionError("Client is not connected")
        return self._workspace_id

    async def close(self) -> None:
        await self._http.aclose()

    async def connect(self) -> None:
        delay = CONNECT_BACKOFF_SECONDS
        for attempt in range(1, CONNECT_ATTEMPTS + 1):
            try:
                await self._connect_once()
                return
            except HulyAuthError:
                raise
            except HulyConnectionError as exc:
                if attempt == CONNECT_ATTEMPTS:
                    raise
                logger.warning(
                    "Connecting to Huly failed (attempt %s/%s): %s", attempt, CONNECT_ATTEMPTS, exc.message
                )
                await asyncio.sleep(delay)
                delay *= 2

    async def _connect_once(self) -> None:
        base_url = self._config.url
        server_config = await self._request("GET", f"{base_url}/config.json", action="load server config")
        if not isinstance(server_config, dict):
            server_config = {}
        accounts_url = server_config.get("ACCOUNTS_URL") or f"{base_url}/_accounts"
        self._collaborator_url = (server_config.get("COLLABORATOR_URL") or f"{base_url}/_collaborator").rstrip("/")
        self._collaborator_url = _to_http(self._collaborator_url)

        if self._config.token is not None:
            token = self._config.token.get_secret_value()
        elif self._config.email is None or self._config.password is None:
            raise HulyAuthError("Either a token or an email and password must be configured")
        else:
            login_client = AccountClient(self._http, accounts_url)
            login = await login_client.call(
                "login",
                {"email": self._config.email, "password": self._config.password.get_secret_value()},
            )
            token = (login or {}).get("token")
            if not token:
                raise HulyAuthError("Login did not return a token")

        selector = AccountClient(self._http, accounts_url, token=token)
        info = await selector.call("selectWorkspace", {"workspaceUrl": self._config.workspace, "kind": "external"})
        if not isinstance(info, dict) or not info.get("endpoint") or not info.get("token"):
            raise HulyAuthError(f"Workspace '{self._config.workspace}' is not available to this account")

        self._endpoint = _to_http(str(info["endpoint"])).rstrip("/")
        self._token = str(info["token"])
        self._workspace_id = str(info.get("workspace") or info.get("workspaceId") or self._config.workspace)
        self._social_id = info.get("socialId") or info.get("account")
        self.account = AccountClient(self._http, accounts_url, token=self._token)
        logger.info("Connected to Huly workspace %s", self._config.workspace)

    async def _request(
        self,
        method: str,
        url: str,
        *,
        action: str,
        params: Mapping[str, Any] | None = None,
        json_body: Any | None = None,
        auth: bool = False,
    ) -> Any:
        headers: dict[str, str] = {}
        if auth and self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        try:
            response = await self._http.request(method, url, params=params, json=json_body, headers=headers)
        except httpx.HTTPError as exc:
            raise HulyConnectionError(f"Failed to {action}: {exc}", cause=exc) from exc
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            payload = _safe_json(exc.response)
            status = exc.response.status_code
            message = f"Failed to {action}: status {status}: {exc.response.text}"
            if status in (401, 403) or is_auth_status(payload):
                raise HulyAuthError(message, cause=payload) from exc
            raise HulyConnectionError(message, cause=payload) from exc
        if response.content:
            return _safe_json(response)
        return None

    def _require_connection(self) -> str:
        if self._endpoint is None:
            raise HulyConnectionError("Client is not connected")
        return self._endpoint

    async def find_all(
        self,
        _class: str,
        query: Mapping[str, Any] | None = None,
        *,
        limit: int | None = None,
        sort: Mapping[str, int] | None = None,
        lookup: Mapping[str, Any] | None = None,
        projection: Mapping[str, int] | None = None,
        total: bool = False,
    ) -> FindResult:
        endpoint = self._require_connection()
        options: dict[str, Any] = {}
        if limit is not None:
            options["limit"] = limit
        if sort:
            options["sort"] = dict(sort)
        if lookup:
            options["lookup"] = dict(lookup)
        if projection:
            options["projection"] = dict(projection)
        if total:
            options["total"] = True
        params = {"class": _class, "query": json.dumps(dict(query or {}))}
        if options:
            params["options"] = json.dumps(options)
        data = await self._request(
            "GET",
            f"{endpoint}/api/v1/find-all/{self.workspace_id}",
            action=f"query {_class}",
            params=params,
            auth=True,
        )
        if isinstance(data, list):
            return FindResult(data)
        if not isinstance(data, dict):
            return FindResult()
        docs = list(data.get("value") or [])
        lookup_map = data.get("lookupMap")
        if isinstance(lookup_map, dict):
            _resolve_lookups(docs, lookup_map)
        return FindResult(docs, data.get("total"))

    async def find_one(
        self,
        _class: str,
        query: Mapping[str, Any] | None = None,
        *,
        sort: Mapping[str, int] | None = None,
        lookup: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        docs = await self.find_all(_class, query, limit=1, sort=sort, lookup=lookup)
        return docs[0] if docs else None

    def _base_tx(self, tx_class: str, object_class: str, space: str, object_id: str) -> dict[str, Any]:
        now = int(time.time() * 1000)
        tx: dict[str, Any] = {
            "_id": generate_id(),
            "_class": tx_class,
            "space": "core:space:Tx",
            "objectId": object_id,
            "objectClass": object_class,
            "objectSpace": space,
            "modifiedOn": now,
            "createdOn": now,
        }
        if self._social_id:
            tx["modifiedBy"] = self._social_id
            tx["createdBy"] = self._social_id
        return tx

    async def _post_tx(self, tx: dict[str, Any]) -> Any:
        endpoint = self._require_connection()
        return await self._request(
            "POST",
            f"{endpoint}/api/v1/tx/{self.workspace_id}",
            action=f"apply {tx['_class']} to {tx['objectClass']}",
            json_body=tx,
            auth=True,
        )

    async def create_doc(
        self,
        _class: str,
        space: str,
        attributes: Mapping[str, Any],
        object_id: str | None = None,
    ) -> str:
        object_id = object_id or generate_id()
        tx = self._base_tx("core:class:TxCreateDoc", _class, space, object_id)
        tx["attributes"] = dict(attributes)
        await self._post_tx(tx)
        return object_id

    async def add_collection(
        self,
        _class: str,
        space: str,
        attached_to: str,
        attached_to_class: str,
        collection: str,
        attributes: Mapping[str, Any],
        object_id: str | None = None,
    ) -> str:
        object_id = object_id or generate_id()
        tx = self._base_tx("core:class:TxCreateDoc", _class, space, object_id)
        tx["attributes"] = dict(attributes)
        tx["attachedTo"] = attached_to
        tx["attachedToClass"] = attached_to_class
        tx["collection"] = collection
        await self._post_tx(tx)
        return object_id

    async def update_doc(
        self,
        _class: str,
        space: str,
        object_id: str,
        operations: Mapping[str, Any],
        *,
        retrieve: bool = False,
    ) -> dict[str, Any] | None:
        tx = self._base_tx("core:class:TxUpdateDoc", _class, space, object_id)
        tx["operations"] = dict(operations)
        tx["retrieve"] = retrieve
        result = await self._post_tx(tx)
        if retrieve and isinstance(result, dict):
            retrieved = result.get("object")
            return retrieved if isinstance(retrieved, dict) else None
        return None

    async def remove_doc(self, _class: str, space: str, object_id: str) -> None:
        tx = self._base_tx("core:class:TxRemoveDoc", _class, space, object_id)
        await self._post_tx(tx)

    def _collab_document_id(self, object_class: str, object_id: str, attribute: str) -> str:
        return f"{self.workspace_id}|{object_class}|{object_id}|{attribute}"

    async def _collaborator_rpc(self, document_id: str, method: str, payload: dict[str, Any]) -> dict[str, Any]:
        self._require_connection()
        data = await self._request(
            "POST",
            f"{self._collaborator_url}/rpc/{quote(document_id, safe='')}",
            action=f"{method} for {document_id}",
            json_body={"method": method, "documentId": document_id, "payload": payload},
            auth=True,
        )
        if isinstance(data, dict) and data.get("error"):
            raise HulyConnectionError(f"Collaborator {method} failed: {data['error']}", cause=data)
        return data if isinstance(data, dict) else {}

    async def upload_markup(self, object_class: str, object_id: str, attribute: str, markdown: str) -> str:
        """Store markdown as collaborative markup and return the content reference."""

        document_id = self._collab_document_id(object_class, object_id, attribute)
        markup = json.dumps(markdown_to_markup(markdown))
        data = await self._collaborator_rpc(document_id, "createContent", {"content": {attribute: markup}})
        content = data.get("content") or {}
        ref = content.get(attribute)
        if not ref:
            raise HulyConnectionError(f"Collaborator did not return content for {document_id}")
        return str(ref)

    async def fetch_markup(
        self,
        object_class: str,
        object_id: str,
        attribute: str,
        ref: str | None,
    ) -> str | None:
        if not ref:
            return None
        document_id = self._collab_document_id(object_class, object_id, attribute)
        data = await self._collaborator_rpc(document_id, "getContent", {"source": ref})
        content = data.get("content") or {}
        return markup_to_markdown(content.get(attribute))


_shared_client: HulyClient | None = None
_client_lock = asyncio.Lock()


async def _shared() -> HulyClient:
    global _shared_client
    async with _client_lock:
        if _shared_client is None:
            try:
                config = load_config()
            except ConfigError as exc:
                raise HulyError(f"Invalid configuration: {exc}") from exc
            client = HulyClient(config)
            try:
                await client.connect()
            except BaseException:
                await client.close()
                raise
            _shared_client = client
        return _shared_client


@asynccontextmanager
async def get_huly_client() -> AsyncIterator[HulyClient]:
    client = await _shared()
    yield client


async def close_huly_client() -> None:
    global _shared_client
    async with _client_lock:
        if _shared_client is not None:
            await _shared_client.close()
            _shared_client = None
