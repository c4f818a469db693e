"""Recruiter directory search with per-user outreach state."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import structlog
from pydantic import ConfigDict, Field, ValidationError, field_validator
from sqlalchemy import Engine, and_, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.sql.elements import ColumnElement

from core.errors import NotFound, QueryValidationError
from core.ids import LIKE_ESCAPE, contains_pattern
from matching.tables import Base, Company, Industry, Location, OutreachHistory, Recruiter
from schemas.base import BaseSchema, utcnow
from schemas.recruiter import (
    CompanySummary,
    LocationSummary,
    OutreachRecord,
    OutreachStatus,
    OutreachSummary,
    RecruiterMatch,
    RecruiterPage,
)

logger = structlog.get_logger()


class RecruiterQuery(BaseSchema):
    """Search parameters. Bounds that depend on settings are checked by the engine.

    Search text is matched literally, so surrounding whitespace is kept.
    Text made only of whitespace is rejected; an empty string means no filter.
    """

    model_config = ConfigDict(str_strip_whitespace=False)

    query: str | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1)
    user_id: str | None = None
    company: str | None = None
    industry: str | None = None
    location: str | None = None
    title: str | None = None

    @field_validator("query", "company", "industry", "location", "title")
    @classmethod
    def _not_blank(cls, v: str | None) -> str | None:
        if v and not v.strip():
            raise ValueError("must not be only whitespace")
        return v


def _contains(column: Any, text: str) -> ColumnElement[bool]:
    return column.ilike(contains_pattern(text), escape=LIKE_ESCAPE)


def _full_name() -> ColumnElement[str]:
    return func.trim(
        func.coalesce(Recruiter.first_name, "") + " " + func.coalesce(Recruiter.last_name, "")
    )


class RecruiterMatchEngine:
    """Fuzzy text search over active recruiters.

    All user text goes through bound parameters with LIKE wildcards escaped,
    so ``%``, ``_`` and regex syntax only ever match themselves.
    """

    def __init__(
        self,
        engine: Engine,
        max_page_size: int = 100,
        max_query_length: int = 200,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.engine = engine
        self.max_page_size = max_page_size
        self.max_query_length = max_query_length
        self.clock = clock
        self._sessions = sessionmaker(engine, expire_on_commit=False)

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    def _validate(self, **params: Any) -> RecruiterQuery:
        try:
            parsed = RecruiterQuery(**params)
        except ValidationError as e:
            raise QueryValidationError("Invalid recruiter search parameters", e.errors()) from e

        errors: list[dict[str, Any]] = []
        if parsed.page_size > self.max_page_size:
            errors.append(
                {
                    "loc": ("page_size",),
                    "msg": f"page_size must be at most {self.max_page_size}",
                    "input": parsed.page_size,
                }
            )
        for field in ("query", "company", "industry", "location", "title"):
            value = getattr(parsed, field)
            if value is not None and len(value) > self.max_query_length:
                errors.append(
                    {
                        "loc": (field,),
                        "msg": f"{field} must be at most {self.max_query_length} characters",
                        "input": value[:40],
                    }
                )
        if errors:
            raise QueryValidationError("Invalid recruiter search parameters", errors)
        return parsed

    @staticmethod
    def _predicates(params: RecruiterQuery) -> list[ColumnElement[bool]]:
        predicates: list[ColumnElement[bool]] = [Recruiter.is_active.is_(True)]
        if params.query:
            predicates.append(
                or_(
                    _contains(_full_name(), params.query),
                    _contains(func.coalesce(Recruiter.title, ""), params.query),
                )
            )
        if params.company:
            predicates.append(_contains(Company.name, params.company))
        if params.industry:
            predicates.append(_contains(Industry.name, params.industry))
        if params.location:
            predicates.append(
                or_(
                    _contains(Location.city, params.location),
                    _contains(Location.state, params.location),
                    _contains(Location.country, params.location),
                )
            )
        if params.title:
            predicates.append(_contains(Recruiter.title, params.title))
        return predicates

    @staticmethod
    def _with_directory_joins(stmt: Any) -> Any:
        return (
            stmt.outerjoin(Company, Company.id == Recruiter.company_id)
            .outerjoin(Industry, Industry.id == Recruiter.industry_id)
            .outerjoin(Location, Location.id == Recruiter.location_id)
        )

    def search(
        self,
        query: str | None = None,
        page: int = 1,
        page_size: int = 20,
        user_id: str | None = None,
        company: str | None = None,
        industry: str | None = None,
        location: str | None = None,
        title: str | None = None,
    ) -> RecruiterPage:
        """One page of active recruiters matching the query.

        Results are ordered by first name (missing names sort as empty) and
        then id, so pages are stable. ``total_count`` is computed by its own
        count query with the same predicate.

        Raises:
            QueryValidationError: bad pagination or over-long search text
        """
        params = self._validate(
            query=query,
            page=page,
            page_size=page_size,
            user_id=user_id,
            company=company,
            industry=industry,
            location=location,
            title=title,
        )
        predicates = self._predicates(params)

        outreach_join = and_(
            OutreachHistory.recruiter_id == Recruiter.id,
            OutreachHistory.user_id == params.user_id,
        )
        page_stmt = (
            self._with_directory_joins(
                select(Recruiter, Company, Industry.name, Location, OutreachHistory).select_from(
                    Recruiter
                )
            )
            .outerjoin(OutreachHistory, outreach_join)
            .where(*predicates)
            .order_by(func.coalesce(Recruiter.first_name, "").asc(), Recruiter.id.asc())
            .offset((params.page - 1) * params.page_size)
            .limit(params.page_size)
        )
        count_stmt = self._with_directory_joins(
            select(func.count(Recruiter.id)).select_from(Recruiter)
        ).where(*predicates)

        with self._sessions() as session:
            rows = session.execute(page_stmt).all()
            total = session.execute(count_stmt).scalar_one()

        results = [self._to_match(*row) for row in rows]
        logger.info(
            "Recruiter search",
            page=params.page,
            page_size=params.page_size,
            returned=len(results),
            total=total,
            filtered=bool(params.company or params.industry or params.location or params.title),
        )
        return RecruiterPage(
            results=results,
            total_count=total,
            page=params.page,
            page_size=params.page_size,
        )

    @staticmethod
    def _to_match(
        recruiter: Recruiter,
        company: Company | None,
        industry_name: str | None,
        location: Location | None,
        outreach: OutreachHistory | None,
    ) -> RecruiterMatch:
        full_name = f"{recruiter.first_name or ''} {recruiter.last_name or ''}".strip()
        return RecruiterMatch(
            id=recruiter.id,
            first_name=recruiter.first_name,
            last_name=recruiter.last_name,
            full_name=full_name,
            email=recruiter.email,
            title=recruiter.title,
            linkedin_url=recruiter.linkedin_url,
            experience_years=recruiter.experience_years,
            rating=recruiter.rating,
            last_active_date=recruiter.last_active_date,
            company=CompanySummary.model_validate(company) if company else CompanySummary(),
            industry=industry_name,
            location=LocationSummary.model_validate(location) if location else LocationSummary(),
            outreach=(
                OutreachSummary(
                    has_contacted=True,
                    last_contact_date=outreach.last_contact_date,
                    status=OutreachStatus(outreach.status),
                )
                if outreach
                else OutreachSummary()
            ),
        )

    def _recruiter_exists(self, session: Session, recruiter_id: int) -> bool:
        return session.get(Recruiter, recruiter_id) is not None

    def record_contact(
        self,
        user_id: str,
        recruiter_id: int,
        status: OutreachStatus = OutreachStatus.DRAFTED,
        contacted_at: datetime | None = None,
    ) -> OutreachRecord:
        """Create or update the (user, recruiter) outreach record.

        Raises:
            NotFound: unknown recruiter
        """
        contacted_at = contacted_at or self.clock()
        with self._sessions() as session:
            if not self._recruiter_exists(session, recruiter_id):
                raise NotFound("recruiter", recruiter_id)
            try:
                row = self._upsert(session, user_id, recruiter_id, status, contacted_at)
            except IntegrityError:
                # Another writer inserted the pair first; update their row
                session.rollback()
                row = self._upsert(session, user_id, recruiter_id, status, contacted_at)

        logger.info(
            "Outreach recorded",
            user_id=user_id,
            recruiter_id=recruiter_id,
            status=status.value,
        )
        return self._to_record(row)

    @staticmethod
    def _find_outreach(session: Session, user_id: str, recruiter_id: int) -> OutreachHistory | None:
        return session.execute(
            select(OutreachHistory).where(
                OutreachHistory.user_id == user_id,
                OutreachHistory.recruiter_id == recruiter_id,
            )
        ).scalar_one_or_none()

    def _upsert(
        self,
        session: Session,
        user_id: str,
        recruiter_id: int,
        status: OutreachStatus,
        contacted_at: datetime,
    ) -> OutreachHistory:
        row = self._find_outreach(session, user_id, recruiter_id)
        if row is None:
            row = OutreachHistory(user_id=user_id, recruiter_id=recruiter_id)
            session.add(row)
        row.status = status.value
        row.last_contact_date = contacted_at
        session.commit()
        return row

    @staticmethod
    def _to_record(row: OutreachHistory) -> OutreachRecord:
        return OutreachRecord(
            user_id=row.user_id,
            recruiter_id=row.recruiter_id,
            status=OutreachStatus(row.status),
            last_contact_date=row.last_contact_date,
        )

    def get_outreach(self, user_id: str, recruiter_id: int) -> OutreachRecord | None:
        with self._sessions() as session:
            row = self._find_outreach(session, user_id, recruiter_id)
        return self._to_record(row) if row is not None else None
