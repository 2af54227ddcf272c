"""Request/response models for the HTTP API (camelCase on the wire)."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from core.listing import ListingRecord, PriceSource, ScrapeResult
from db.models import EnrichmentJob, JobStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ListingModel(CamelModel):
    id: str
    url: str
    title: str = ""
    price: int | None = None
    price_source: PriceSource = PriceSource.MISSING
    country: str | None = None
    is_sponsored: bool = False

    @model_validator(mode="after")
    def check_price_matches_source(self) -> "ListingModel":
        if (self.price is not None) != self.price_source.has_price:
            raise ValueError(f"price {self.price!r} is inconsistent with priceSource {self.price_source.value}")
        return self

    def to_record(self) -> ListingRecord:
        return ListingRecord.from_dict(self.model_dump(by_alias=True, mode="json"))

    @classmethod
    def from_record(cls, record: ListingRecord) -> "ListingModel":
        return cls.model_validate(record.to_dict())


class ScrapeRequestModel(CamelModel):
    url: str
    page_size: int | None = Field(default=None, ge=1, le=500)
    max_pages: int | None = Field(default=None, ge=1)
    no_cache: bool = False


class ScrapeResponse(CamelModel):
    expected_count: int | None
    count: int
    page_size: int
    pages_scraped: int
    total_pages: int
    partial: bool
    warning: str | None = None
    from_cache: bool = False
    items: list[ListingModel]

    @classmethod
    def from_result(cls, result: ScrapeResult) -> "ScrapeResponse":
        return cls.model_validate(result.to_dict())


class EnrichRequestModel(CamelModel):
    items: list[ListingModel]


class JobAccepted(CamelModel):
    job_id: str
    status: JobStatus = JobStatus.PENDING
    total: int


class JobResponse(CamelModel):
    id: str
    status: JobStatus
    total: int
    processed: int
    progress: int
    results: list[ListingModel] = []
    error: str | None = None
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @classmethod
    def from_job(cls, job: EnrichmentJob) -> "JobResponse":
        return cls(
            id=job.id,
            status=job.status,
            total=job.total,
            processed=job.processed,
            progress=job.progress,
            results=[ListingModel.from_record(r) for r in job.results],
            error=job.error_message,
            created_at=job.created_at,
            updated_at=job.updated_at,
            expires_at=job.expires_at,
        )
