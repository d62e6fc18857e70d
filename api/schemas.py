from __future__ import annotations

from pydantic import BaseModel, Field

from pipeline.orchestrator import FileUpload, PipelineRequest


class UploadBody(BaseModel):
    file_name: str
    content: str
    mime_type: str | None = None


class PipelineBody(BaseModel):
    sources: list[str] = Field(default_factory=lambda: ["reddit"])
    queries: list[str] = Field(default_factory=list)
    product_name: str | None = None
    search_terms: list[str] = Field(default_factory=list)
    competitors: list[str] = Field(default_factory=list)
    subreddits: list[str] = Field(default_factory=list)
    files: list[UploadBody] = Field(default_factory=list)
    limit: int | None = Field(default=None, ge=1, le=100)
    company_context: str | None = None

    def to_request(self) -> PipelineRequest:
        return PipelineRequest(
            sources=list(self.sources),
            queries=list(self.queries),
            product_name=self.product_name,
            search_terms=list(self.search_terms),
            competitors=list(self.competitors),
            subreddits=list(self.subreddits),
            files=[FileUpload(f.file_name, f.content, f.mime_type) for f in self.files],
            limit=self.limit,
        )


class SourceSearchBody(BaseModel):
    query: str = Field(min_length=1)
    subreddit: str | None = None
    limit: int = Field(default=25, ge=1, le=100)
    time: str = "week"


class ReviewBody(BaseModel):
    reviewer: str | None = None


class RejectBody(ReviewBody):
    reason: str | None = None


class EditBody(ReviewBody):
    title: str
    description: str
    priority: str
    labels: list[str] = Field(default_factory=list)


class CreatedTicketBody(BaseModel):
    platform: str
    ticket_id: str = Field(min_length=1)
    ticket_url: str
