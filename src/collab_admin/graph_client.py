from __future__ import annotations

import time
from typing import Any, Callable, Dict, Iterable, Iterator, Optional

import httpx

from .audit import JsonAuditLogger
from .config import TenantConfig

THROTTLE_STATUS_CODES = (429, 503, 504)


class GraphClient:
    """Tenant-scoped Microsoft Graph client with request logging.

    Each call is attempted once. Throttled responses are only retried when
    ``max_retries`` is raised above zero, honouring ``Retry-After``.
    """

    def __init__(
        self,
        tenant_config: TenantConfig,
        authenticator: Any,
        audit_logger: JsonAuditLogger,
        timeout: float = 30.0,
        max_retries: int = 0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.tenant_config = tenant_config
        self.authenticator = authenticator
        self.audit = audit_logger
        self.timeout = timeout
        self.max_retries = max_retries
        self.sleep = sleep
        self.session = httpx.Client(timeout=self.timeout, transport=transport)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "GraphClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def _auth_header(self, scopes: Iterable[str]) -> Dict[str, str]:
        token = self.authenticator.acquire_token(scopes)
        return {"Authorization": f"Bearer {token}"}

    def request(
        self,
        method: str,
        url: str,
        scopes: Optional[Iterable[str]] = None,
        allowed_statuses: Iterable[int] = (),
        **kwargs: Any,
    ) -> httpx.Response:
        scopes = scopes or self.tenant_config.default_scopes
        headers = kwargs.pop("headers", {})
        headers.update(self._auth_header(scopes))
        backoff = 1.0

        for attempt in range(1, self.max_retries + 2):
            response = self.session.request(method, url, headers=headers, **kwargs)
            if response.status_code in THROTTLE_STATUS_CODES and attempt <= self.max_retries:
                retry_after = self._get_retry_after_seconds(response) or backoff
                self.audit.warning(
                    "graph_throttled",
                    tenant_id=self.tenant_config.tenant_id,
                    status=response.status_code,
                    retry_after=retry_after,
                    attempt=attempt,
                )
                self.sleep(retry_after)
                backoff = min(backoff * 2, 30)
                continue

            if response.status_code >= 400 and response.status_code not in allowed_statuses:
                self.audit.error(
                    "graph_request_failed",
                    tenant_id=self.tenant_config.tenant_id,
                    method=method,
                    status=response.status_code,
                    url=url,
                    body=response.text,
                )
                response.raise_for_status()

            self.audit.debug(
                "graph_request_succeeded",
                tenant_id=self.tenant_config.tenant_id,
                method=method,
                status=response.status_code,
                url=url,
            )
            return response

    def _get_retry_after_seconds(self, response: httpx.Response) -> Optional[float]:
        retry_after = response.headers.get("Retry-After")
        if retry_after is None:
            return None
        try:
            return float(retry_after)
        except ValueError:
            return None

    def url(self, path: str) -> str:
        if path.startswith("https://") or path.startswith("http://"):
            return path
        return f"{self.tenant_config.graph_base_url}{path}"

    def get(self, path: str, **kwargs: Any) -> httpx.Response:
        return self.request("GET", self.url(path), **kwargs)

    def post(self, path: str, json: Any, **kwargs: Any) -> httpx.Response:
        return self.request("POST", self.url(path), json=json, **kwargs)

    def put(self, path: str, json: Any, **kwargs: Any) -> httpx.Response:
        return self.request("PUT", self.url(path), json=json, **kwargs)

    def iter_values(self, path: str, **kwargs: Any) -> Iterator[Dict[str, Any]]:
        """Yield items from a collection, following ``@odata.nextLink``."""
        next_url: Optional[str] = path
        while next_url:
            data = self.get(next_url, **kwargs).json()
            yield from data.get("value", [])
            next_url = data.get("@odata.nextLink")
