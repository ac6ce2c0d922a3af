"""Data models for extracted posts."""
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Fields Substack may send as null; the model keeps them as empty strings.
STRING_FIELDS = (
    "type",
    "slug",
    "post_date",
    "canonical_url",
    "previous_post_slug",
    "next_post_slug",
    "cover_image",
    "description",
    "subtitle",
    "title",
    "body_html",
)


class Post(BaseModel):
    """Structured Substack post, as embedded in the page preload payload."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    id: int = Field(default=0, description="Post id")
    publication_id: int = Field(default=0)
    type: str = Field(default="", description="post, podcast, thread...")
    slug: str = Field(default="")
    post_date: str = Field(default="", description="ISO-8601 publish timestamp, not guaranteed parseable")
    canonical_url: str = Field(default="")
    previous_post_slug: str = Field(default="")
    next_post_slug: str = Field(default="")
    cover_image: str = Field(default="")
    description: str = Field(default="")
    subtitle: str = Field(default="")
    wordcount: int = Field(default=0)
    title: str = Field(default="")
    body_html: str = Field(default="", description="Source of truth for every rendered format")

    @field_validator(*STRING_FIELDS, mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("id", "publication_id", "wordcount", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @property
    def summary(self) -> Optional[str]:
        """Subtitle if present, else description if present, else None."""
        return self.subtitle or self.description or None


class PostWrapper(BaseModel):
    """Shape of the embedded payload: {"post": {...}}."""

    model_config = ConfigDict(extra="ignore")

    post: Post
