"""Retrieval result models."""

from pydantic import BaseModel, Field


class EvidenceItem(BaseModel):
    """A single ranked search result. Lives only for one request."""

    title: str = ""
    url: str
    content: str = Field("", description="Excerpt returned by the provider")
    relevance_score: float = 0.0
    published_date: str | None = None
    source: str = Field("web", description="Retrieval source that produced the item")


class SearchOptions(BaseModel):
    """Options passed to a search capability."""

    max_results: int = Field(5, ge=1, le=20)
    depth: str = "basic"
    time_range_days: int | None = None
    include_domains: list[str] = Field(default_factory=list)


class SearchQuery(BaseModel):
    """One query issued by the retrieval aggregator."""

    source: str
    query: str
    options: SearchOptions = Field(default_factory=SearchOptions)


class RetrievalResult(BaseModel):
    """Merged, truncated evidence for one request."""

    items: list[EvidenceItem] = Field(default_factory=list)
    citations: list[str] = Field(default_factory=list)
    failed_sources: list[str] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.failed_sources)
