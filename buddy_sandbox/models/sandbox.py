"""Sandbox data models."""

# Standard library imports
from enum import Enum
from typing import List, Optional

# Third-party imports
from pydantic import BaseModel, ConfigDict, Field

DEFAULT_OS = "ubuntu:24.04"


class SandboxStatus(str, Enum):
    """Runtime status of a sandbox."""

    STARTING = "STARTING"
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
    RESTARTING = "RESTARTING"
    FAILED = "FAILED"


class SetupStatus(str, Enum):
    """Status of the sandbox first-boot setup."""

    INPROGRESS = "INPROGRESS"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class CreateSandboxRequest(BaseModel):
    """Request body for creating a sandbox."""

    identifier: str = Field(..., min_length=1, description="Unique sandbox identifier")
    name: str = Field(..., min_length=1, description="Display name")
    os: str = Field(default=DEFAULT_OS, description="Base image, e.g. ubuntu:24.04")


class SandboxData(BaseModel):
    """Full sandbox resource."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    identifier: str
    name: str
    status: str
    setup_status: Optional[str] = None
    os: Optional[str] = None
    html_url: Optional[str] = None
    url: Optional[str] = None


class SandboxSummary(BaseModel):
    """Entry of the sandbox list endpoint."""

    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    identifier: Optional[str] = None
    name: Optional[str] = None
    status: Optional[str] = None
    url: Optional[str] = None


class SandboxListResponse(BaseModel):
    """Response model for listing sandboxes."""

    model_config = ConfigDict(extra="ignore")

    sandboxes: List[SandboxSummary] = Field(default_factory=list)
