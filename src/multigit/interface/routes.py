"""API routes — thin controllers over the forge adapter."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query

from multigit.domain.exceptions import FORGE_ERRORS
from multigit.domain.ports.forge_client import AccountDirectory
from multigit.interface.dependencies import get_directory
from multigit.interface.schemas import ErrorResponse, OrgResponse, OrgType, RepoResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.get("/orgs", response_model=list[OrgResponse])
async def list_orgs(
    directory: AccountDirectory = Depends(get_directory),
) -> list[OrgResponse]:
    """The authenticated user first, then the organizations they belong to."""
    orgs_response: list[OrgResponse] = []

    try:
        me = await directory.get_me()
    except FORGE_ERRORS as exc:
        logger.warning("Unable to get authenticated user: %s", exc.error_message())
    else:
        orgs_response.append(OrgResponse(login=me.login, type=OrgType.USER))

    try:
        orgs = await directory.list_my_orgs()
    except FORGE_ERRORS as exc:
        logger.warning("Unable to get user's orgs: %s", exc.error_message())
        orgs = []

    orgs_response.extend(OrgResponse(login=o.login, type=OrgType.ORGANIZATION) for o in orgs)
    return orgs_response


@router.get(
    "/orgs/{org}",
    response_model=list[RepoResponse],
    responses={
        403: {"model": ErrorResponse, "description": "Not authorized"},
        404: {"model": ErrorResponse, "description": "Organization or user not found"},
        429: {"model": ErrorResponse, "description": "GitHub API rate limit exceeded"},
        502: {"model": ErrorResponse, "description": "Unexpected GitHub response"},
    },
)
async def list_org_repos(
    org: str,
    org_type: OrgType = Query(OrgType.ORGANIZATION, alias="type"),
    directory: AccountDirectory = Depends(get_directory),
) -> list[RepoResponse]:
    """Repositories owned by an organization or a user."""
    logger.info("Managing: %s", org)
    repos = await directory.list_repos(org, is_user=org_type is OrgType.USER)
    return [RepoResponse(name=r.name) for r in repos]
