"""
HTTP routes for the TaPiff projects/pages API.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from backend import access
from backend.auth import Principal, get_principal
from backend.db import DbClient
from backend.dependencies import get_db_client
from backend.schemas import (
    HealthResponse,
    MessageResponse,
    PageCreateRequest,
    PageResponse,
    PageUpdateRequest,
    ProjectCreateRequest,
    ProjectDetailResponse,
    ProjectListItem,
    ProjectResponse,
    ProjectUpdateRequest,
)

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


@router.get("/projects", response_model=list[ProjectListItem])
def list_projects(
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    """
    Projects owned by the caller, most recently touched first.
    """
    projects = access.list_projects(db, principal)
    return [ProjectListItem.model_validate(p) for p in projects]


@router.post("/projects", response_model=ProjectResponse, status_code=201)
def create_project(
    payload: ProjectCreateRequest,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    project = access.create_project(
        db, principal, payload.title, payload.description
    )
    return ProjectResponse.model_validate(project)


@router.get("/projects/{project_id}", response_model=ProjectDetailResponse)
def get_project(
    project_id: str,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    project = access.get_project(db, principal, project_id)
    return ProjectDetailResponse.model_validate(project)


@router.put("/projects/{project_id}", response_model=ProjectResponse)
def update_project(
    project_id: str,
    payload: ProjectUpdateRequest,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    # exclude_unset keeps "not sent" apart from "sent as empty/null".
    fields = payload.model_dump(exclude_unset=True)
    project = access.update_project(db, principal, project_id, fields)
    return ProjectResponse.model_validate(project)


@router.delete("/projects/{project_id}", response_model=MessageResponse)
def delete_project(
    project_id: str,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    access.delete_project(db, principal, project_id)
    return MessageResponse(message="Project deleted successfully")


@router.post("/pages", response_model=PageResponse, status_code=201)
def create_page(
    payload: PageCreateRequest,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    page = access.create_page(
        db,
        principal,
        payload.project_id,
        payload.page_type,
        payload.page_data,
        month=payload.month,
        page_number=payload.page_number,
    )
    return PageResponse.model_validate(page)


@router.get("/pages/{page_id}", response_model=PageResponse)
def get_page(
    page_id: str,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    page = access.get_page(db, principal, page_id)
    return PageResponse.model_validate(page)


@router.put("/pages/{page_id}", response_model=PageResponse)
def update_page(
    page_id: str,
    payload: PageUpdateRequest,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    fields = payload.model_dump(exclude_unset=True)
    page = access.update_page(db, principal, page_id, fields)
    return PageResponse.model_validate(page)


@router.delete("/pages/{page_id}", response_model=MessageResponse)
def delete_page(
    page_id: str,
    principal: Principal = Depends(get_principal),
    db: DbClient = Depends(get_db_client),
):
    access.delete_page(db, principal, page_id)
    return MessageResponse(message="Page deleted successfully")
