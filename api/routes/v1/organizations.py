"""
api/routes/v1/organizations.py -- Organization routes.

Routes:
  GET  /organizations               -- list all organizations (public)
  POST /organizations               -- create an organization (public)
  GET  /organizations/{org_id}      -- organization detail (public)
  GET  /organizations/{org_id}/members  -- accounts in the org (members only)

Listing and creation are public because signup needs an organization ID
before the caller has an account. Only names and IDs are exposed; nothing
scoped to an organization's members is reachable without a session in it.
"""

from fastapi import APIRouter, Depends, Request

from api.models import AccountSummary, OrganizationCreate, OrganizationResponse
from auth.dependencies import get_current_principal
from auth.store import AccountStore
from core.errors import ForbiddenError, NotFoundError
from core.models import Principal

router = APIRouter()


@router.get("/organizations", response_model=list[OrganizationResponse])
def list_organizations(request: Request) -> list[OrganizationResponse]:
    """Return every organization, newest first."""
    user_store: AccountStore = request.app.state.user_store
    return [OrganizationResponse.from_organization(o) for o in user_store.list_organizations()]


@router.post("/organizations", response_model=OrganizationResponse, status_code=201)
def create_organization(request: Request, body: OrganizationCreate) -> OrganizationResponse:
    user_store: AccountStore = request.app.state.user_store
    org_id = user_store.create_organization(body.name)
    return OrganizationResponse.from_organization(user_store.get_organization(org_id))


@router.get("/organizations/{org_id}", response_model=OrganizationResponse)
def get_organization(request: Request, org_id: int) -> OrganizationResponse:
    user_store: AccountStore = request.app.state.user_store
    org = user_store.get_organization(org_id)
    if org is None:
        raise NotFoundError("Organization not found.")
    return OrganizationResponse.from_organization(org)


@router.get("/organizations/{org_id}/members", response_model=list[AccountSummary])
def list_members(
    request: Request,
    org_id: int,
    principal: Principal = Depends(get_current_principal),
) -> list[AccountSummary]:
    """Return the accounts of the caller's own organization, ordered by email."""
    if org_id != principal.organization_id:
        raise ForbiddenError()
    user_store: AccountStore = request.app.state.user_store
    return [AccountSummary(id=u.id, email=u.email) for u in user_store.list_users(org_id)]
