"""
Async access to the relational store.

Each method opens its own short-lived session, so independent reads can be
awaited together with ``asyncio.gather``. SQLAlchemy failures are converted
into ``PersistenceError`` carrying an ``ErrorKind``.
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Type, TypeVar

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from mathgen.core.database import Base, build_engine, build_session_factory, utcnow
from mathgen.core.errors import ErrorKind, PersistenceError
from mathgen.models.hint import Hint
from mathgen.models.problem import ProblemSession
from mathgen.models.score import ScoreSummary
from mathgen.models.solution import Solution
from mathgen.models.submission import Submission

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

UNIQUE_SQLSTATE = "23505"
SQLITE_UNIQUE_NAMES = {"SQLITE_CONSTRAINT_UNIQUE", "SQLITE_CONSTRAINT_PRIMARYKEY"}


def classify_integrity_error(exc: IntegrityError) -> ErrorKind:
    """Tell unique violations apart from other constraint failures by driver code."""
    seen = set()
    candidate: Optional[BaseException] = exc.orig
    while candidate is not None and id(candidate) not in seen:
        seen.add(id(candidate))
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(
            candidate, "pgcode", None
        )
        if sqlstate == UNIQUE_SQLSTATE:
            return ErrorKind.UNIQUE_VIOLATION
        if getattr(candidate, "sqlite_errorname", None) in SQLITE_UNIQUE_NAMES:
            return ErrorKind.UNIQUE_VIOLATION
        candidate = candidate.__cause__ or candidate.__context__
    return ErrorKind.CONSTRAINT_VIOLATION


class Datastore:
    def __init__(self, database_url: str, echo: bool = False):
        self.engine = build_engine(database_url, echo=echo)
        self.session_factory = build_session_factory(self.engine)

    async def create_all(self):
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self):
        await self.engine.dispose()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        async with self.session_factory() as db:
            try:
                yield db
            except IntegrityError as e:
                await db.rollback()
                raise PersistenceError(classify_integrity_error(e), str(e.orig)) from e
            except SQLAlchemyError as e:
                await db.rollback()
                raise PersistenceError(ErrorKind.UNAVAILABLE, str(e)) from e
            except OSError as e:
                raise PersistenceError(ErrorKind.UNAVAILABLE, str(e)) from e

    # -- generic helpers -------------------------------------------------

    async def find_one(self, model: Type[ModelT], **key: Any) -> Optional[ModelT]:
        async with self.session() as db:
            result = await db.execute(select(model).filter_by(**key).limit(1))
            return result.scalars().first()

    async def insert(self, model: Type[ModelT], **fields: Any) -> ModelT:
        async with self.session() as db:
            row = model(**fields)
            db.add(row)
            await db.commit()
            return row

    async def insert_or_reuse(
        self,
        model: Type[ModelT],
        unique_key: Dict[str, Any],
        payload: Dict[str, Any],
    ) -> Tuple[ModelT, bool]:
        """
        Insert a row keyed on a uniqueness constraint, or return the row that
        already holds the key.

        Returns ``(row, created)``. Only a unique violation falls back to the
        existing row; every other failure propagates as ``PersistenceError``.
        """
        try:
            row = await self.insert(model, **unique_key, **payload)
            return row, True
        except PersistenceError as e:
            if e.kind is not ErrorKind.UNIQUE_VIOLATION:
                raise
            logger.info(
                f"{model.__tablename__}: unique key {unique_key} already taken, "
                "reusing existing row"
            )

        existing = await self.find_one(model, **unique_key)
        if existing is None:
            raise PersistenceError(
                ErrorKind.NOT_FOUND,
                f"{model.__tablename__} row for {unique_key} vanished after conflict",
            )
        return existing, False

    # -- problem sessions ------------------------------------------------

    async def get_problem_session(self, session_id: str) -> Optional[ProblemSession]:
        async with self.session() as db:
            return await db.get(ProblemSession, session_id)

    async def mark_revealed(self, session_id: str) -> bool:
        """Set ``revealed_at`` if it is still null. Returns True if this call set it."""
        async with self.session() as db:
            result = await db.execute(
                update(ProblemSession)
                .where(ProblemSession.id == session_id)
                .where(ProblemSession.revealed_at.is_(None))
                .values(revealed_at=utcnow())
            )
            await db.commit()
            return result.rowcount > 0

    # -- submissions -----------------------------------------------------

    async def has_correct_submission(self, session_id: str) -> bool:
        async with self.session() as db:
            result = await db.execute(
                select(Submission.id)
                .where(Submission.session_id == session_id)
                .where(Submission.is_correct.is_(True))
                .limit(1)
            )
            return result.first() is not None

    # -- hints -----------------------------------------------------------

    async def count_hints(self, session_id: str) -> int:
        async with self.session() as db:
            result = await db.execute(
                select(func.count(Hint.id)).where(Hint.session_id == session_id)
            )
            return result.scalar_one()

    async def list_hints(self, session_id: str) -> List[Hint]:
        async with self.session() as db:
            result = await db.execute(
                select(Hint)
                .where(Hint.session_id == session_id)
                .order_by(Hint.hint_number.asc())
            )
            return list(result.scalars().all())

    # -- solutions -------------------------------------------------------

    async def get_solution(self, session_id: str) -> Optional[Solution]:
        return await self.find_one(Solution, session_id=session_id)

    # -- scores ----------------------------------------------------------

    async def get_score(self, client_id: str) -> Optional[ScoreSummary]:
        async with self.session() as db:
            return await db.get(ScoreSummary, client_id)

    async def save_score(self, client_id: str, **fields: int) -> ScoreSummary:
        """Upsert the score row for ``client_id``."""
        async with self.session() as db:
            row = await db.get(ScoreSummary, client_id)
            if row is None:
                row = ScoreSummary(client_id=client_id)
                db.add(row)
            for name, value in fields.items():
                setattr(row, name, value)
            row.last_updated = utcnow()
            await db.commit()
            return row

    # -- history ---------------------------------------------------------

    async def list_history(
        self,
        limit: int,
        before: Optional[datetime] = None,
        before_id: Optional[str] = None,
    ) -> List[Tuple[ProblemSession, List[Submission]]]:
        """Newest sessions first, keyset-paginated on ``(created_at, id)``."""
        async with self.session() as db:
            query = select(ProblemSession)
            if before is not None and before_id is not None:
                query = query.where(
                    or_(
                        ProblemSession.created_at < before,
                        and_(
                            ProblemSession.created_at == before,
                            ProblemSession.id < before_id,
                        ),
                    )
                )
            elif before is not None:
                query = query.where(ProblemSession.created_at < before)
            query = query.order_by(
                ProblemSession.created_at.desc(), ProblemSession.id.desc()
            ).limit(limit)
            sessions = list((await db.execute(query)).scalars().all())

            by_session: Dict[str, List[Submission]] = {s.id: [] for s in sessions}
            if sessions:
                submissions = await db.execute(
                    select(Submission)
                    .where(Submission.session_id.in_(list(by_session)))
                    .order_by(Submission.created_at.desc())
                )
                for sub in submissions.scalars().all():
                    by_session[sub.session_id].append(sub)

            return [(s, by_session[s.id]) for s in sessions]

    async def clear_history(self) -> int:
        async with self.session() as db:
            await db.execute(delete(Submission))
            await db.execute(delete(Hint))
            await db.execute(delete(Solution))
            result = await db.execute(delete(ProblemSession))
            await db.commit()
            return result.rowcount
