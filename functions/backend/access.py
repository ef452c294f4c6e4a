"""
Ownership-scoped operations over projects and pages.

Every function takes the acting principal explicitly. Lookups check
existence before ownership, so a caller probing someone else's id gets
``Forbidden`` rather than ``NotFound``.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.auth import Principal
from backend.db import DbClient, PageRecord, ProjectRecord
from backend.errors import Forbidden, NotFound, ValidationFailed

logger = logging.getLogger(__name__)


def _owned_project(
    db: DbClient,
    principal: Principal,
    project_id: str,
    *,
    include_pages: bool = False,
) -> ProjectRecord:
    project = db.get_project(project_id, include_pages=include_pages)
    if project is None:
        raise NotFound("Project not found")
    if project.owner_id != principal.user_id:
        logger.warning(
            "User %s denied access to project %s", principal.user_id, project_id
        )
        raise Forbidden()
    return project


def _owned_page(db: DbClient, principal: Principal, page_id: str) -> PageRecord:
    page = db.get_page(page_id)
    if page is None:
        raise NotFound("Page not found")
    project = db.get_project(page.project_id)
    if project is None:
        # Parent removed between the two reads.
        raise NotFound("Page not found")
    if project.owner_id != principal.user_id:
        logger.warning("User %s denied access to page %s", principal.user_id, page_id)
        raise Forbidden()
    return page


def list_projects(db: DbClient, principal: Principal) -> list[ProjectRecord]:
    return db.list_projects(principal.user_id)


def create_project(
    db: DbClient,
    principal: Principal,
    title: Optional[str],
    description: Optional[str] = None,
) -> ProjectRecord:
    if not title:
        raise ValidationFailed("Title is required")
    project = db.create_project(principal.user_id, title, description)
    logger.info("User %s created project %s", principal.user_id, project.id)
    return project


def get_project(db: DbClient, principal: Principal, project_id: str) -> ProjectRecord:
    return _owned_project(db, principal, project_id, include_pages=True)


def update_project(
    db: DbClient, principal: Principal, project_id: str, fields: dict
) -> ProjectRecord:
    """Apply a partial update.

    ``fields`` holds only the keys the caller actually sent. An empty title
    keeps the stored one; description and cover_image are written as given,
    including empty or null values.
    """
    _owned_project(db, principal, project_id)
    changes = {
        key: fields[key] for key in ("description", "cover_image") if key in fields
    }
    if fields.get("title"):
        changes["title"] = fields["title"]
    project = db.update_project(project_id, changes)
    if project is None:
        raise NotFound("Project not found")
    logger.info("User %s updated project %s", principal.user_id, project_id)
    return project


def delete_project(db: DbClient, principal: Principal, project_id: str) -> None:
    _owned_project(db, principal, project_id)
    if not db.delete_project(project_id):
        raise NotFound("Project not found")
    logger.info("User %s deleted project %s", principal.user_id, project_id)


def create_page(
    db: DbClient,
    principal: Principal,
    project_id: Optional[str],
    page_type: Optional[str],
    page_data: Optional[str],
    month: Optional[int] = None,
    page_number: Optional[int] = None,
) -> PageRecord:
    """Create a page; a missing or zero page_number means "append"."""
    if not project_id or not page_type or not page_data:
        raise ValidationFailed("Missing required fields")
    _owned_project(db, principal, project_id)
    try:
        page = db.create_page(
            project_id,
            page_type=page_type,
            page_data=page_data,
            month=month,
            page_number=page_number,
        )
    except KeyError:
        raise NotFound("Project not found") from None
    logger.info(
        "User %s created page %s (#%s) in project %s",
        principal.user_id,
        page.id,
        page.page_number,
        project_id,
    )
    return page


def get_page(db: DbClient, principal: Principal, page_id: str) -> PageRecord:
    return _owned_page(db, principal, page_id)


def update_page(
    db: DbClient, principal: Principal, page_id: str, fields: dict
) -> PageRecord:
    """Apply a partial update.

    page_type, page_data and page_number keep their stored values when the
    new value is falsy, so ``page_number=0`` reads as "unchanged". month is
    written whenever the key is present, so an explicit null clears it.
    """
    _owned_page(db, principal, page_id)
    changes = {
        key: fields[key]
        for key in ("page_type", "page_data", "page_number")
        if fields.get(key)
    }
    if "month" in fields:
        changes["month"] = fields["month"]
    page = db.update_page(page_id, changes)
    if page is None:
        raise NotFound("Page not found")
    logger.info("User %s updated page %s", principal.user_id, page_id)
    return page


def delete_page(db: DbClient, principal: Principal, page_id: str) -> None:
    _owned_page(db, principal, page_id)
    if not db.delete_page(page_id):
        raise NotFound("Page not found")
    logger.info("User %s deleted page %s", principal.user_id, page_id)
