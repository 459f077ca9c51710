"""Unique slug allocation within a parent scope.

Candidates are checked against active siblings before insertion, but that
check races with concurrent creators. The ``slug_key`` unique column on each
slugged table is the authoritative guard: an insert that loses the race
raises ``IntegrityError`` and is retried with a freshly allocated slug.
"""

import logging
import re
import unicodedata
from collections.abc import Callable
from typing import TypeVar
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tenantgate.config import get_settings
from tenantgate.db.models import Company, Project, Workspace
from tenantgate.exceptions import SlugAllocationExhausted

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 80
GLOBAL_SCOPE = "global"

# Parent scope column and fallback root for each slugged model.
SLUG_SCOPES = {
    Project: ("workspace_id", "project"),
    Workspace: ("company_id", "workspace"),
    Company: (None, "company"),
}

SluggedRow = TypeVar("SluggedRow", Project, Workspace, Company)


def slugify(label: str) -> str:
    """Convert a label to a URL-safe slug.

    Args:
        label: Human readable name.

    Returns:
        str: Lowercase ASCII slug, possibly empty.
    """
    ascii_label = (
        unicodedata.normalize("NFKD", label or "").encode("ascii", "ignore").decode("ascii")
    )
    slug = ascii_label.lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug)
    slug = slug.strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-")


def slug_key(scope_id: str | None, slug: str) -> str:
    """Value of the unique ``slug_key`` column for an active row."""
    return f"{scope_id or GLOBAL_SCOPE}:{slug}"


class SlugAllocator:
    """Allocates slugs for one slugged model."""

    def __init__(
        self,
        db: Session,
        model: type[SluggedRow],
        max_attempts: int | None = None,
        insert_retries: int | None = None,
    ):
        """Initialize slug allocator.

        Args:
            db: Database session.
            model: Project, Workspace or Company.
            max_attempts: Numbered candidates to try before the random fallback.
            insert_retries: Insert attempts before giving up on uniqueness conflicts.
        """
        settings = get_settings()
        self.db = db
        self.model = model
        self.scope_attr, self.fallback_root = SLUG_SCOPES[model]
        self.max_attempts = max_attempts or settings.slug_max_attempts
        self.insert_retries = insert_retries or settings.slug_insert_retries

    def find_active_sibling_by_slug(
        self, scope_id: str | None, slug: str, exclude_id: str | None = None
    ) -> bool:
        """Check whether a non-deleted sibling already uses ``slug``.

        Args:
            scope_id: Parent scope id (None for global scopes).
            slug: Candidate slug.
            exclude_id: Row to ignore, used when renaming.

        Returns:
            bool: True if the slug is taken.
        """
        query = self.db.query(self.model.id).filter(
            self.model.slug == slug,
            self.model.deleted_at.is_(None),
        )
        if self.scope_attr is not None:
            query = query.filter(getattr(self.model, self.scope_attr) == scope_id)
        if exclude_id is not None:
            query = query.filter(self.model.id != exclude_id)
        return query.first() is not None

    def allocate(self, scope_id: str | None, label: str, exclude_id: str | None = None) -> str:
        """Propose a slug that no active sibling uses.

        Tries ``root``, ``root-2``, ``root-3`` and so on. When every numbered
        candidate is taken, returns ``root`` plus eight random hex characters
        without checking it again.

        Args:
            scope_id: Parent scope id.
            label: Human readable name.
            exclude_id: Row to ignore, used when renaming.

        Returns:
            str: Slug candidate.
        """
        root = slugify(label) or self.fallback_root
        for i in range(self.max_attempts):
            candidate = root if i == 0 else slugify(f"{root} {i + 1}")
            if not self.find_active_sibling_by_slug(scope_id, candidate, exclude_id):
                return candidate

        logger.warning(
            f"Slug candidates for '{root}' exhausted in {self.model.__tablename__} "
            f"scope {scope_id}, using random suffix"
        )
        return f"{root}-{uuid4().hex[:8]}"

    def insert_with_unique_slug(
        self,
        scope_id: str | None,
        label: str,
        build: Callable[[str], SluggedRow],
    ) -> SluggedRow:
        """Allocate a slug, build the row and commit, retrying on conflicts.

        ``build`` receives the slug, must add the row (and anything created
        with it) to the session, and return the row. It is called again after
        every rollback.

        Args:
            scope_id: Parent scope id.
            label: Human readable name.
            build: Row factory.

        Returns:
            SluggedRow: The committed row.

        Raises:
            SlugAllocationExhausted: If every attempt hit a uniqueness conflict.
        """
        for attempt in range(1, self.insert_retries + 1):
            slug = self.allocate(scope_id, label)
            row = build(slug)
            row.slug = slug
            row.slug_key = slug_key(scope_id, slug)
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if "slug_key" not in str(e.orig):
                    raise
                logger.warning(
                    f"Slug '{slug}' taken concurrently in {self.model.__tablename__} "
                    f"scope {scope_id} (attempt {attempt}/{self.insert_retries})"
                )
                continue
            self.db.refresh(row)
            return row

        raise SlugAllocationExhausted()

    def rename(self, row: SluggedRow, label: str) -> SluggedRow:
        """Re-allocate the slug of an existing row from a new label.

        Args:
            row: Persisted row.
            label: New human readable name.

        Returns:
            SluggedRow: The updated row.

        Raises:
            SlugAllocationExhausted: If every attempt hit a uniqueness conflict.
        """
        scope_id = getattr(row, self.scope_attr) if self.scope_attr else None

        for attempt in range(1, self.insert_retries + 1):
            slug = self.allocate(scope_id, label, exclude_id=row.id)
            row.name = label
            row.slug = slug
            row.slug_key = slug_key(scope_id, slug)
            try:
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if "slug_key" not in str(e.orig):
                    raise
                logger.warning(
                    f"Slug '{slug}' taken concurrently while renaming {row.id} "
                    f"(attempt {attempt}/{self.insert_retries})"
                )
                continue
            self.db.refresh(row)
            return row

        raise SlugAllocationExhausted()

    def release(self, row: SluggedRow) -> None:
        """Free a row's slug for reuse; call when soft deleting (no commit)."""
        row.slug_key = None


def allocate_slug(db: Session, scope_id: str | None, label: str, model=Project) -> str:
    """Propose a unique slug for ``label`` in a scope.

    Args:
        db: Database session.
        scope_id: Parent scope id.
        label: Human readable name.
        model: Slugged model, projects by default.

    Returns:
        str: Slug candidate.
    """
    return SlugAllocator(db, model).allocate(scope_id, label)
