"""Wire models for the archive search and metadata APIs."""
from __future__ import annotations

from pydantic import BaseModel, Field, AliasChoices, field_validator


def _first_scalar(value):
    # The search API returns repeated fields as lists
    if isinstance(value, list):
        return "; ".join(str(v) for v in value) if value else None
    return value


class CatalogItem(BaseModel):
    identifier: str
    title: str
    date: str | None = None
    description: str | None = None
    creator: str | None = None
    item_size: int | None = None
    external_identifier: str | None = Field(
        default=None, validation_alias=AliasChoices("external-identifier", "external_identifier")
    )
    collections: list[str] | None = Field(
        default=None, validation_alias=AliasChoices("collection", "collections")
    )

    @field_validator("title", "date", "description", "creator", "external_identifier", mode="before")
    @classmethod
    def _flatten(cls, value):
        return _first_scalar(value)

    @field_validator("collections", mode="before")
    @classmethod
    def _listify(cls, value):
        if isinstance(value, str):
            return [value]
        return value


class SearchResponse(BaseModel):
    count: int
    cursor: str | None = None
    items: list[CatalogItem] = Field(default_factory=list)
    total: int


class ItemFile(BaseModel):
    name: str
    format: str
    source: str | None = None
    size: str | None = None
    md5: str | None = None
    sha1: str | None = None
    crc32: str | None = None
    length: str | None = None
    height: str | None = None
    width: str | None = None


class ItemDetails(BaseModel):
    server: str
    directory: str = Field(validation_alias=AliasChoices("dir", "directory"))
    files: list[ItemFile] = Field(default_factory=list)
    files_count: int | None = None
    item_size: int | None = None
