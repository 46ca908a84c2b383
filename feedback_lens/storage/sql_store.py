"""SQLAlchemy-backed report store (SQLite by default)."""
from __future__ import annotations

import datetime
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import JSON, Column, DateTime, Integer, String, create_engine, select
from sqlalchemy.orm import declarative_base, sessionmaker

from feedback_lens import config
from feedback_lens.reporting.models import ReportSummary, StoredReportRecord
from feedback_lens.storage.store import Clock, ReportStore, utc_now

logger = logging.getLogger(__name__)

Base = declarative_base()


class AnalysisRecord(Base):
    __tablename__ = "analyses"
    seq = Column(Integer, primary_key=True, autoincrement=True)
    id = Column(String(64), unique=True, index=True, nullable=False)
    user_id = Column(String(128), index=True, nullable=False)
    analysis_name = Column(String(256), nullable=False)
    source_file_name = Column(String(512), nullable=False)
    processed_data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False)


def _as_utc(value: datetime.datetime) -> datetime.datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


class SqlReportStore(ReportStore):
    """Store report documents in the ``analyses`` table of any SQL database."""

    def __init__(self, url: Optional[str] = None, *, clock: Optional[Clock] = None, echo: bool = False) -> None:
        self.url = url or config.DATABASE_URL
        self._engine = create_engine(self.url, echo=echo, future=True)
        self._session_factory = sessionmaker(bind=self._engine, autoflush=False)
        self._clock = clock or utc_now
        Base.metadata.create_all(bind=self._engine)

    def save(
        self,
        user_id: str,
        analysis_name: str,
        source_file_name: str,
        processed_data: Dict[str, Any],
    ) -> str:
        storage_id = uuid.uuid4().hex
        with self._session_factory() as session:
            session.add(
                AnalysisRecord(
                    id=storage_id,
                    user_id=user_id,
                    analysis_name=analysis_name,
                    source_file_name=source_file_name,
                    processed_data=processed_data,
                    created_at=self._clock(),
                )
            )
            session.commit()
        logger.info("report_saved", extra={"storage_id": storage_id})
        return storage_id

    def get_by_id(self, storage_id: str) -> Optional[StoredReportRecord]:
        with self._session_factory() as session:
            row = session.execute(
                select(AnalysisRecord).where(AnalysisRecord.id == storage_id)
            ).scalar_one_or_none()
            if row is None:
                return None
            return StoredReportRecord(
                storage_id=row.id,
                user_id=row.user_id,
                analysis_name=row.analysis_name,
                source_file_name=row.source_file_name,
                processed_data=row.processed_data,
                created_at=_as_utc(row.created_at),
            )

    def list_by_user(self, user_id: str) -> List[ReportSummary]:
        stmt = (
            select(AnalysisRecord.id, AnalysisRecord.analysis_name, AnalysisRecord.created_at)
            .where(AnalysisRecord.user_id == user_id)
            .order_by(AnalysisRecord.created_at.desc(), AnalysisRecord.seq.desc())
        )
        with self._session_factory() as session:
            return [
                ReportSummary(
                    storage_id=storage_id,
                    analysis_name=name,
                    created_at=_as_utc(created_at),
                )
                for storage_id, name, created_at in session.execute(stmt)
            ]

    def dispose(self) -> None:
        self._engine.dispose()
