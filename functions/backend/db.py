"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Optional, Protocol

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DbClient(Protocol):
    """Interface for project/page persistence.

    Implementations do no authorization; callers resolve ownership first.
    Every mutating page method also touches the parent project's
    ``updated_at`` within the same unit of work.
    """

    def list_projects(self, owner_id: str) -> list["ProjectRecord"]:
        ...

    def create_project(
        self, owner_id: str, title: str, description: Optional[str] = None
    ) -> "ProjectRecord":
        ...

    def get_project(
        self, project_id: str, *, include_pages: bool = False
    ) -> Optional["ProjectRecord"]:
        ...

    def update_project(
        self, project_id: str, changes: dict
    ) -> Optional["ProjectRecord"]:
        ...

    def delete_project(self, project_id: str) -> bool:
        ...

    def create_page(
        self,
        project_id: str,
        *,
        page_type: str,
        page_data: str,
        month: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> "PageRecord":
        ...

    def get_page(self, page_id: str) -> Optional["PageRecord"]:
        ...

    def update_page(self, page_id: str, changes: dict) -> Optional["PageRecord"]:
        ...

    def delete_page(self, page_id: str) -> bool:
        ...


@dataclass
class PageSummary:
    id: str
    page_type: str


@dataclass
class PageRecord:
    id: str
    project_id: str
    page_type: str
    page_number: int
    page_data: str
    month: Optional[int] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def summary(self) -> PageSummary:
        return PageSummary(id=self.id, page_type=self.page_type)


@dataclass
class ProjectRecord:
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    cover_image: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    # PageSummary items from list_projects, PageRecord items from get_project.
    pages: list = field(default_factory=list)


PROJECT_FIELDS = ("title", "description", "cover_image")
PAGE_FIELDS = ("page_type", "page_data", "month", "page_number")


class InMemoryDbClient:
    """Simple in-memory database for development and tests.

    A single lock guards all state, since sync FastAPI handlers run on a
    threadpool.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self.users: set[str] = set()
        self.projects: Dict[str, ProjectRecord] = {}
        self.pages: Dict[str, PageRecord] = {}

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.users.clear()
            self.projects.clear()
            self.pages.clear()

    def _pages_of(self, project_id: str) -> list[PageRecord]:
        return [p for p in self.pages.values() if p.project_id == project_id]

    def _touch(self, project_id: str, now: datetime) -> None:
        project = self.projects.get(project_id)
        if project:
            project.updated_at = now

    def list_projects(self, owner_id: str) -> list[ProjectRecord]:
        with self._lock:
            owned = [p for p in self.projects.values() if p.owner_id == owner_id]
            owned.sort(key=lambda p: p.updated_at, reverse=True)
            return [
                replace(p, pages=[page.summary() for page in self._pages_of(p.id)])
                for p in owned
            ]

    def create_project(
        self, owner_id: str, title: str, description: Optional[str] = None
    ) -> ProjectRecord:
        now = _utcnow()
        record = ProjectRecord(
            id=uuid.uuid4().hex,
            owner_id=owner_id,
            title=title,
            description=description,
            created_at=now,
            updated_at=now,
        )
        with self._lock:
            self.users.add(owner_id)
            self.projects[record.id] = record
            return replace(record)

    def get_project(
        self, project_id: str, *, include_pages: bool = False
    ) -> Optional[ProjectRecord]:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                return None
            pages: list = []
            if include_pages:
                pages = sorted(
                    (replace(p) for p in self._pages_of(project_id)),
                    key=lambda p: p.page_number,
                )
            return replace(project, pages=pages)

    def update_project(
        self, project_id: str, changes: dict
    ) -> Optional[ProjectRecord]:
        with self._lock:
            project = self.projects.get(project_id)
            if not project:
                return None
            for key in PROJECT_FIELDS:
                if key in changes:
                    setattr(project, key, changes[key])
            project.updated_at = _utcnow()
            return replace(project)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            if project_id not in self.projects:
                return False
            for page in self._pages_of(project_id):
                del self.pages[page.id]
            del self.projects[project_id]
            return True

    def create_page(
        self,
        project_id: str,
        *,
        page_type: str,
        page_data: str,
        month: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> PageRecord:
        with self._lock:
            if project_id not in self.projects:
                raise KeyError(project_id)
            if not page_number:
                numbers = [p.page_number for p in self._pages_of(project_id)]
                page_number = max(numbers) + 1 if numbers else 1
            now = _utcnow()
            record = PageRecord(
                id=uuid.uuid4().hex,
                project_id=project_id,
                page_type=page_type,
                page_number=page_number,
                page_data=page_data,
                month=month,
                created_at=now,
                updated_at=now,
            )
            self.pages[record.id] = record
            self._touch(project_id, now)
            return replace(record)

    def get_page(self, page_id: str) -> Optional[PageRecord]:
        with self._lock:
            page = self.pages.get(page_id)
            return replace(page) if page else None

    def update_page(self, page_id: str, changes: dict) -> Optional[PageRecord]:
        with self._lock:
            page = self.pages.get(page_id)
            if not page:
                return None
            for key in PAGE_FIELDS:
                if key in changes:
                    setattr(page, key, changes[key])
            now = _utcnow()
            page.updated_at = now
            self._touch(page.project_id, now)
            return replace(page)

    def delete_page(self, page_id: str) -> bool:
        with self._lock:
            page = self.pages.pop(page_id, None)
            if not page:
                return False
            self._touch(page.project_id, _utcnow())
            return True


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_page_record(self, row: "PageRow") -> PageRecord:
        return PageRecord(
            id=row.id,
            project_id=row.project_id,
            page_type=row.page_type,
            page_number=row.page_number,
            page_data=row.page_data,
            month=row.month,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    def _to_project_record(
        self, row: "ProjectRow", pages: Optional[list] = None
    ) -> ProjectRecord:
        return ProjectRecord(
            id=row.id,
            owner_id=row.owner_id,
            title=row.title,
            description=row.description,
            cover_image=row.cover_image,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
            pages=pages or [],
        )

    def list_projects(self, owner_id: str) -> list[ProjectRecord]:
        with self.Session() as session:
            rows = (
                session.execute(
                    select(ProjectRow)
                    .where(ProjectRow.owner_id == owner_id)
                    .order_by(ProjectRow.updated_at.desc())
                )
                .scalars()
                .all()
            )
            summaries: Dict[str, list[PageSummary]] = {row.id: [] for row in rows}
            if summaries:
                page_rows = session.execute(
                    select(PageRow.id, PageRow.project_id, PageRow.page_type)
                    .where(PageRow.project_id.in_(list(summaries)))
                    .order_by(PageRow.page_number.asc())
                )
                for page_id, project_id, page_type in page_rows:
                    summaries[project_id].append(
                        PageSummary(id=page_id, page_type=page_type)
                    )
            return [self._to_project_record(row, summaries[row.id]) for row in rows]

    def _ensure_user(self, session: Session, owner_id: str, now: datetime) -> None:
        # Idempotent insert; concurrent first requests from one user both land here.
        dialect = self.engine.dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(UserRow).values(id=owner_id, created_at=now)
        elif dialect == "sqlite":
            stmt = sqlite_insert(UserRow).values(id=owner_id, created_at=now)
        else:
            if session.get(UserRow, owner_id) is None:
                session.add(UserRow(id=owner_id, created_at=now))
                session.flush()
            return
        session.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))

    def create_project(
        self, owner_id: str, title: str, description: Optional[str] = None
    ) -> ProjectRecord:
        now = _utcnow()
        with self.Session() as session:
            self._ensure_user(session, owner_id, now)
            row = ProjectRow(
                id=uuid.uuid4().hex,
                owner_id=owner_id,
                title=title,
                description=description,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_project_record(row)

    def get_project(
        self, project_id: str, *, include_pages: bool = False
    ) -> Optional[ProjectRecord]:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                return None
            pages: list = []
            if include_pages:
                page_rows = session.execute(
                    select(PageRow)
                    .where(PageRow.project_id == project_id)
                    .order_by(PageRow.page_number.asc())
                ).scalars()
                pages = [self._to_page_record(p) for p in page_rows]
            return self._to_project_record(row, pages)

    def update_project(
        self, project_id: str, changes: dict
    ) -> Optional[ProjectRecord]:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                return None
            for key in PROJECT_FIELDS:
                if key in changes:
                    setattr(row, key, changes[key])
            row.updated_at = _utcnow()
            session.commit()
            session.refresh(row)
            return self._to_project_record(row)

    def delete_project(self, project_id: str) -> bool:
        with self.Session() as session:
            row = session.get(ProjectRow, project_id)
            if not row:
                return False
            # Explicit child delete so backends without FK enforcement
            # (SQLite by default) still cascade.
            session.execute(delete(PageRow).where(PageRow.project_id == project_id))
            session.delete(row)
            session.commit()
            return True

    def create_page(
        self,
        project_id: str,
        *,
        page_type: str,
        page_data: str,
        month: Optional[int] = None,
        page_number: Optional[int] = None,
    ) -> PageRecord:
        now = _utcnow()
        with self.Session() as session:
            # Row lock serializes page number assignment per project.
            project = session.get(ProjectRow, project_id, with_for_update=True)
            if project is None:
                raise KeyError(project_id)
            if not page_number:
                highest = session.execute(
                    select(func.max(PageRow.page_number)).where(
                        PageRow.project_id == project_id
                    )
                ).scalar()
                page_number = (highest or 0) + 1
            row = PageRow(
                id=uuid.uuid4().hex,
                project_id=project_id,
                page_type=page_type,
                page_number=page_number,
                page_data=page_data,
                month=month,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            project.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_page_record(row)

    def get_page(self, page_id: str) -> Optional[PageRecord]:
        with self.Session() as session:
            row = session.get(PageRow, page_id)
            return self._to_page_record(row) if row else None

    def update_page(self, page_id: str, changes: dict) -> Optional[PageRecord]:
        now = _utcnow()
        with self.Session() as session:
            row = session.get(PageRow, page_id)
            if not row:
                return None
            for key in PAGE_FIELDS:
                if key in changes:
                    setattr(row, key, changes[key])
            row.updated_at = now
            row.project.updated_at = now
            session.commit()
            session.refresh(row)
            return self._to_page_record(row)

    def delete_page(self, page_id: str) -> bool:
        with self.Session() as session:
            row = session.get(PageRow, page_id)
            if not row:
                return False
            row.project.updated_at = _utcnow()
            session.delete(row)
            session.commit()
            return True


Base = declarative_base()


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False)


class ProjectRow(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True)
    owner_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    cover_image = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, index=True)

    pages = relationship(
        "PageRow",
        back_populates="project",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PageRow(Base):
    __tablename__ = "pages"

    id = Column(String, primary_key=True)
    project_id = Column(
        String,
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    page_type = Column(String, nullable=False)
    page_number = Column(Integer, nullable=False)
    month = Column(Integer, nullable=True)
    page_data = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    project = relationship("ProjectRow", back_populates="pages")
