"""Request bodies of the JSON API.

Required fields are declared optional so the routers can answer a
missing field with the 400 message clients already expect; type errors
still surface as RequestValidationError (mapped to 400 in app.py).
"""

from __future__ import annotations

from typing import Annotated, Any, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from animescrape.domain.entities import ScrapeOptions


class _Body(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _id_to_str(value: Any) -> Any:
    # Content ids arrive as strings or bare integers.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


ContentId = Annotated[Optional[str], BeforeValidator(_id_to_str)]


class ScrapeOptionsBody(_Body):
    timeout: Optional[int] = Field(default=None, gt=0, description="Milliseconds.")
    retries: Optional[int] = Field(default=None, ge=1)
    headless: Optional[bool] = None
    delay_between_episodes: Optional[int] = Field(
        default=None, alias="delayBetweenEpisodes", ge=0, description="Milliseconds."
    )

    def to_options(self, default: ScrapeOptions) -> ScrapeOptions:
        return ScrapeOptions(
            timeout_ms=self.timeout or default.timeout_ms,
            max_retries=self.retries or default.max_retries,
            headless=default.headless if self.headless is None else self.headless,
        )

    @property
    def delay_seconds(self) -> float | None:
        if self.delay_between_episodes is None:
            return None
        return self.delay_between_episodes / 1000


class ScrapeEpisodeBody(_Body):
    anime_title: Optional[str] = Field(default=None, alias="animeTitle")
    anime_id: ContentId = Field(default=None, alias="animeId")
    episode_number: int = Field(default=1, alias="episodeNumber", ge=1)
    options: ScrapeOptionsBody = Field(default_factory=ScrapeOptionsBody)


class ScraperTestBody(_Body):
    anime_title: str = Field(default="One Piece", alias="animeTitle", min_length=1)
    episode_number: int = Field(default=1, alias="episodeNumber", ge=1)


class ScrapeAllBody(_Body):
    anime_title: Optional[str] = Field(default=None, alias="animeTitle")
    anime_id: ContentId = Field(default=None, alias="animeId")
    max_episodes: int = Field(default=20, alias="maxEpisodes", ge=1)


class BatchScrapeBody(_Body):
    anime_title: Optional[str] = Field(default=None, alias="animeTitle")
    anime_id: ContentId = Field(default=None, alias="animeId")
    episode_numbers: Optional[list[int]] = Field(default=None, alias="episodeNumbers")
    options: ScrapeOptionsBody = Field(default_factory=ScrapeOptionsBody)


class StartLargeScrapeBody(_Body):
    anime_id: ContentId = Field(default=None, alias="animeId")
    anime_title: Optional[str] = Field(default=None, alias="animeTitle")
    total_episodes: Optional[int] = Field(default=None, alias="totalEpisodes")
    chunk_size: Optional[int] = Field(default=None, alias="chunkSize", ge=1)


class ScrapeChunkBody(_Body):
    anime_id: ContentId = Field(default=None, alias="animeId")
    anime_title: Optional[str] = Field(default=None, alias="animeTitle")
    chunk_number: Optional[int] = Field(default=None, alias="chunkNumber")
    chunk_size: Optional[int] = Field(default=None, alias="chunkSize", ge=1)
    progress_id: ContentId = Field(default=None, alias="progressId")


class JobRefBody(_Body):
    """Body of the run/cancel endpoints for background large jobs."""

    progress_id: ContentId = Field(default=None, alias="progressId")
