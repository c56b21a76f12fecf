"""Sandbox file system data models."""

# Standard library imports
from enum import Enum
from typing import List, Optional

# Third-party imports
from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    """Kind of entry in a sandbox directory listing."""

    FILE = "FILE"
    DIR = "DIR"


class ContentItem(BaseModel):
    """Directory entry as returned by the content endpoints."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = None
    path: Optional[str] = None
    type: ContentType = ContentType.FILE
    size: Optional[int] = Field(default=None, ge=0)
    url: Optional[str] = None
    html_url: Optional[str] = None


class ContentListResponse(BaseModel):
    """Response model for listing a directory."""

    model_config = ConfigDict(extra="ignore")

    contents: List[ContentItem] = Field(default_factory=list)


class FileInfo(BaseModel):
    """File information model."""

    name: str
    path: str
    type: ContentType
    size: Optional[int] = Field(default=None, description="Size in bytes (files only)")
    url: Optional[str] = Field(default=None, description="API URL for this item")
    html_url: Optional[str] = Field(default=None, description="Web URL for this item")

    @property
    def is_dir(self) -> bool:
        return self.type is ContentType.DIR

    @classmethod
    def from_item(cls, item: ContentItem) -> "FileInfo":
        return cls(
            name=item.name or "",
            path=item.path or "",
            type=item.type,
            size=item.size,
            url=item.url,
            html_url=item.html_url,
        )
