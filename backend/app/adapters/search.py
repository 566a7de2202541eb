"""Web search adapter using the Tavily search API."""

from typing import Any, Protocol

import httpx

from backend.app.models.evidence import EvidenceItem, SearchOptions


class SearchError(Exception):
    """Search provider returned an error or could not be reached."""

    def __init__(self, message: str, status: int | None = None, request_id: str | None = None):
        super().__init__(message)
        self.status = status
        self.request_id = request_id


class SearchClient(Protocol):
    """Protocol for search capability implementations."""

    async def search(self, query: str, options: SearchOptions) -> list[EvidenceItem]:
        """Run one ranked search.

        Args:
            query: Free-text query
            options: Result count, depth and recency window

        Returns:
            Ranked evidence items, best first
        """
        ...


def days_to_time_range(days: int | None) -> str | None:
    """Map a recency window in days to Tavily's coarse time_range buckets."""
    if not days or days <= 0:
        return None
    if days <= 1:
        return "day"
    if days <= 7:
        return "week"
    if days <= 31:
        return "month"
    return "year"


class DisabledSearchClient:
    """Search client used when no provider key is configured."""

    async def search(self, query: str, options: SearchOptions) -> list[EvidenceItem]:
        """Return no results."""
        return []


class TavilySearchClient:
    """Tavily-backed search client."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.tavily.com/search",
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            api_key: Tavily API key (read from environment)
            base_url: Search endpoint
            client: Optional httpx client (for testing with mocks)
        """
        self._api_key = api_key
        self._base_url = base_url
        self._client = client

    def _build_body(self, query: str, options: SearchOptions) -> dict[str, Any]:
        body: dict[str, Any] = {
            "query": query,
            "search_depth": options.depth,
            "topic": "general",
            "max_results": options.max_results,
            "include_answer": False,
            "include_raw_content": False,
            "include_images": False,
        }
        time_range = days_to_time_range(options.time_range_days)
        if time_range:
            body["time_range"] = time_range
        if options.include_domains:
            body["include_domains"] = options.include_domains
        return body

    async def search(self, query: str, options: SearchOptions) -> list[EvidenceItem]:
        """Run one search against Tavily.

        Raises:
            SearchError: On missing key, HTTP error status, transport failure
                or a body that is not a Tavily result list
        """
        if not self._api_key:
            raise SearchError("Missing TAVILY_API_KEY")

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient()
            close_client = True

        try:
            response = await client.post(
                self._base_url,
                json=self._build_body(query, options),
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
            if response.status_code >= 400:
                raise SearchError(
                    f"Tavily search failed ({response.status_code})",
                    status=response.status_code,
                    request_id=response.headers.get("x-request-id"),
                )
        except httpx.HTTPError as e:
            raise SearchError(f"Tavily search error: {type(e).__name__}") from e
        finally:
            if close_client:
                await client.aclose()

        try:
            data = response.json()
        except ValueError as e:
            raise SearchError(
                "Tavily returned a non-JSON response", status=response.status_code
            ) from e

        try:
            return self._parse_results(data)
        except (AttributeError, TypeError, ValueError) as e:
            raise SearchError("Tavily returned an unexpected response shape") from e

    def _parse_results(self, data: Any) -> list[EvidenceItem]:
        results = data.get("results") or []
        if not isinstance(results, list):
            raise TypeError(f"results is {type(results).__name__}, expected list")

        items: list[EvidenceItem] = []
        for r in results:
            url = r.get("url") or ""
            if not url:
                continue
            items.append(
                EvidenceItem(
                    title=r.get("title") or "",
                    url=url,
                    content=r.get("content") or "",
                    relevance_score=float(r.get("score") or 0.0),
                    published_date=r.get("published_date"),
                )
            )
        return items
