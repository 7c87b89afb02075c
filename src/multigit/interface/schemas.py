"""Pydantic response DTOs for the listing service."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class OrgType(str, Enum):
    USER = "user"
    ORGANIZATION = "organization"


class OrgResponse(BaseModel):
    """One entry of ``GET /api/orgs``."""

    login: str
    type: OrgType


class RepoResponse(BaseModel):
    """One entry of ``GET /api/orgs/{org}``."""

    name: str


class ErrorResponse(BaseModel):
    """Body of every error response the service sends."""

    status: str = "error"
    message: str
