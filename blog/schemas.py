from pydantic import BaseModel, ConfigDict, Field, field_validator
from datetime import datetime

from blog.models import TAG_NAME_MAX_LENGTH
from blog.services.tag_service import parse_tags


# --- Tag ---

class TagResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


# --- Category ---

class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Category name must not be blank")
        return value


class CategoryResponse(BaseModel):
    id: int
    name: str
    model_config = ConfigDict(from_attributes=True)


# --- User ---

class AuthorResponse(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    model_config = ConfigDict(from_attributes=True)


# --- Article ---

class ArticleForm(BaseModel):
    """Fields submitted by the create and edit forms."""

    id: int | None = None
    title: str = Field(min_length=1, max_length=300)
    content: str = Field(min_length=1)
    category_id: int | None = None
    tags: str = ""

    @field_validator("title", "content")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    @field_validator("category_id", mode="before")
    @classmethod
    def _empty_category(cls, value):
        # An unselected <select> posts an empty string.
        if value in ("", None):
            return None
        return value

    @field_validator("tags")
    @classmethod
    def _tag_lengths(cls, value: str) -> str:
        if any(len(name) > TAG_NAME_MAX_LENGTH for name in parse_tags(value)):
            raise ValueError(f"each tag must be at most {TAG_NAME_MAX_LENGTH} characters")
        return value


class ArticleViewModel(BaseModel):
    """Presentation-only model backing the create/edit forms."""

    id: int | None = None
    title: str = ""
    content: str = ""
    category_id: int | None = None
    categories: list[CategoryResponse] = []
    tags: str = ""


class FormError(BaseModel):
    field: str
    message: str


class ArticleFormPage(BaseModel):
    """A form redisplayed after a validation failure, input preserved."""

    form: ArticleViewModel
    errors: list[FormError] = []


class ArticleResponse(BaseModel):
    id: int
    title: str
    view_count: int
    created_at: datetime | None = None
    author_id: int
    category_id: int | None = None
    author: AuthorResponse | None = None
    category: CategoryResponse | None = None
    tags: list[TagResponse] = []
    model_config = ConfigDict(from_attributes=True)


class ArticleDetail(ArticleResponse):
    content: str


class ArticleDeleteConfirmation(ArticleDetail):
    """Detail view plus the joined tag string shown on the delete page."""

    tag_string: str = ""
