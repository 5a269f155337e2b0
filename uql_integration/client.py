"""UQL query service API client."""
import httpx
import structlog
from typing import Dict, Optional
from urllib.parse import urljoin

from shared.exceptions import RemoteQueryError
from uql_integration.config import UqlConfig
from uql_integration.decoder import parse_response
from uql_integration.models import DataSet, QueryResponse

logger = structlog.get_logger()

class UqlClient:
    """UQL API client for executing and continuing queries."""

    def __init__(self, config: Optional[UqlConfig] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config or UqlConfig()
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "UqlClient":
        return self

    async def __aexit__(self, *exc_info):
        await self.close()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "Authorization": f"Bearer {self.config.token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if self.config.tenant_id:
            headers["appd-tid"] = self.config.tenant_id
        return headers

    def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure the HTTP client is created (lazy connection)."""
        if self._http is not None:
            return self._http

        if not self.config.is_configured():
            raise RemoteQueryError(
                "UQL not configured. Required: UQL_URL, UQL_TOKEN. "
                f"Current: url={self.config.url}, token={'*' if self.config.token else None}"
            )

        if not self.config.verify:
            logger.warning("SSL verification disabled for UQL requests", url=self.config.url)

        self._http = httpx.AsyncClient(
            base_url=self.config.url,
            headers=self._headers(),
            verify=self.config.verify,
            timeout=self.config.timeout,
            transport=self._transport,
        )
        return self._http

    async def close(self):
        """Close the underlying HTTP client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def _send(self, method: str, url: str, **kwargs) -> QueryResponse:
        http = self._ensure_client()
        try:
            response = await http.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error("UQL request failed", method=method, url=url, error=str(e))
            raise RemoteQueryError(f"UQL {method} {url} failed", cause=e) from e

        if response.status_code >= 400:
            detail = response.text
            try:
                problem = response.json()
                if isinstance(problem, dict):
                    detail = f"{problem.get('title', '')}: {problem.get('detail', '')}".strip(": ")
            except ValueError:
                pass
            logger.error("UQL request rejected", method=method, url=url, status_code=response.status_code, detail=detail)
            raise RemoteQueryError(f"UQL {method} {url} returned {response.status_code} {detail}")

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteQueryError(f"UQL {method} {url} returned invalid JSON", cause=e) from e
        return parse_response(payload)

    async def execute_query(self, query: str) -> QueryResponse:
        """Execute a UQL query and decode the first page of its results."""
        logger.debug("Executing UQL query", query=query)
        result = await self._send("POST", self.config.execute_path, json={"query": query})
        logger.debug("UQL query executed", has_errors=result.has_errors(), has_main=result.main() is not None)
        return result

    async def continue_query(self, data_set: DataSet, link_name: str) -> QueryResponse:
        """Follow a named continuation link (``next`` or ``follow``) of a data set."""
        href = data_set.links.get(link_name)
        if not href:
            raise RemoteQueryError(f"data set {data_set.name} has no {link_name!r} link")
        self._ensure_client()
        # links are usually relative to the service root
        url = href if href.startswith(("http://", "https://")) else urljoin(f"{self.config.url.rstrip('/')}/", href.lstrip("/"))
        logger.debug("Continuing UQL query", link=link_name, dataset=data_set.name)
        return await self._send("GET", url)
