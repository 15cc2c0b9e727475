"""SQLAlchemy-backed scan record store with per-record change subscriptions."""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import JSON, DateTime, Integer, String, Text, create_engine, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ingredient_scan.errors import FailedPrecondition, Internal, NotFound
from ingredient_scan.schemas import AnalysisResult, ScanRecord, ScanStatus

logger = logging.getLogger(__name__)

Subscriber = Callable[[ScanRecord], None]


class Base(DeclarativeBase):
    pass


class ScanRow(Base):
    __tablename__ = "scans"

    scan_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    extracted_ingredients: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    analysis_result: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_record(row: ScanRow) -> ScanRecord:
    created_at = row.created_at
    # SQLite hands back naive datetimes
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    record = ScanRecord(
        scan_id=row.scan_id,
        owner_id=row.owner_id,
        created_at=created_at,
        status=ScanStatus(row.status),
        image_url=row.image_url,
        extracted_ingredients=list(row.extracted_ingredients or []),
        analysis_result=AnalysisResult(**row.analysis_result) if row.analysis_result else None,
        error_message=row.error_message,
    )
    record._version = row.version or 0
    return record


def create_db_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


class RecordStore:
    """
    Create / read / update-by-id on scan records.

    Every update goes through :meth:`transition`, a compare-and-swap on the
    record's current status, so two writers working from stale reads cannot
    both move the same record forward. The atomicity unit is one record.
    """

    def __init__(self, engine, clock: Callable[[], datetime] = _utcnow):
        self.engine = engine
        self.SessionLocal = sessionmaker(
            bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
        )
        self._clock = clock
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "RecordStore":
        store = cls(create_db_engine(database_url), **kwargs)
        store.create_schema()
        return store

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)

    # -----------------------------------
    # Reads
    # -----------------------------------

    def get(self, scan_id: str) -> Optional[ScanRecord]:
        try:
            with self.SessionLocal() as session:
                row = session.get(ScanRow, scan_id)
                return _to_record(row) if row is not None else None
        except SQLAlchemyError as e:
            raise Internal(f"Failed to read scan {scan_id}", details=str(e)) from e

    def list_by_owner(self, owner_id: str, limit: int = 50) -> List[ScanRecord]:
        stmt = (
            select(ScanRow)
            .where(ScanRow.owner_id == owner_id)
            .order_by(ScanRow.created_at.desc(), ScanRow.scan_id.desc())
            .limit(limit)
        )
        try:
            with self.SessionLocal() as session:
                return [_to_record(row) for row in session.scalars(stmt)]
        except SQLAlchemyError as e:
            raise Internal(f"Failed to list scans for {owner_id}", details=str(e)) from e

    # -----------------------------------
    # Writes
    # -----------------------------------

    def create(self, scan_id: str, owner_id: str, image_url: str) -> ScanRecord:
        row = ScanRow(
            scan_id=scan_id,
            owner_id=owner_id,
            created_at=self._clock(),
            status=ScanStatus.PROCESSING.value,
            image_url=image_url,
            extracted_ingredients=[],
            analysis_result=None,
            error_message=None,
            version=0,
        )
        try:
            with self.SessionLocal.begin() as session:
                session.add(row)
        except SQLAlchemyError as e:
            raise Internal(f"Failed to create scan {scan_id}", details=str(e)) from e

        record = _to_record(row)
        logger.info("Scan record created: scan_id=%s owner_id=%s", scan_id, owner_id)
        self._publish(record)
        return record

    def transition(
        self,
        scan_id: str,
        expected_status: ScanStatus,
        status: ScanStatus,
        *,
        extracted_ingredients: Optional[List[str]] = None,
        analysis_result: Optional[AnalysisResult] = None,
        error_message: Optional[str] = None,
    ) -> ScanRecord:
        """
        Atomically move a record from ``expected_status`` to ``status``.

        ``analysis_result`` is stored only with ``complete`` and
        ``error_message`` only with ``error``; both are cleared by every
        other status. ``extracted_ingredients`` is written only when given.
        """
        values: Dict[str, Any] = {
            "status": status.value,
            "analysis_result": None,
            "error_message": None,
            "version": ScanRow.version + 1,
        }
        if status is ScanStatus.COMPLETE:
            if analysis_result is None:
                raise ValueError("analysis_result is required to complete a scan")
            values["analysis_result"] = analysis_result.model_dump()
        elif status is ScanStatus.ERROR:
            if not error_message:
                raise ValueError("error_message is required to fail a scan")
            values["error_message"] = error_message

        if extracted_ingredients is not None:
            if status is ScanStatus.ANALYZING and not extracted_ingredients:
                raise FailedPrecondition("No ingredients found to analyze")
            values["extracted_ingredients"] = list(extracted_ingredients)

        stmt = (
            update(ScanRow)
            .where(ScanRow.scan_id == scan_id, ScanRow.status == expected_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            with self.SessionLocal.begin() as session:
                result = session.execute(stmt)
                row = session.get(ScanRow, scan_id, populate_existing=True)
                if row is None:
                    raise NotFound(f"Scan {scan_id} not found")
                if result.rowcount == 0:
                    raise FailedPrecondition(
                        f"Stale status for scan {scan_id}: expected {expected_status.value}, "
                        f"found {row.status}"
                    )
                record = _to_record(row)
        except SQLAlchemyError as e:
            raise Internal(f"Failed to update scan {scan_id}", details=str(e)) from e

        logger.info(
            "Scan %s: %s -> %s", scan_id, expected_status.value, status.value
        )
        self._publish(record)
        return record

    # -----------------------------------
    # Subscriptions
    # -----------------------------------

    def subscribe(self, scan_id: str, callback: Subscriber) -> Callable[[], None]:
        """Push the full record to ``callback`` after every committed change."""
        with self._lock:
            self._subscribers.setdefault(scan_id, []).append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(scan_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(scan_id, None)

        return unsubscribe

    def _publish(self, record: ScanRecord) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(record.scan_id, []))
        for callback in callbacks:
            try:
                callback(record)
            except Exception:
                logger.exception("Subscriber failed for scan %s", record.scan_id)
