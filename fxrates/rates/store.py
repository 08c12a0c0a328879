"""
Persistent rate cache backed by SQLAlchemy.

Every public method runs in its own transaction, so readers only ever see
complete records. Writes go through ``INSERT ... ON CONFLICT DO UPDATE`` on
the natural key (from_currency, to_currency, rate_date), which makes them
idempotent and resolves concurrent writers as last-writer-wins.
"""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from fxrates.database.connection import Database
from fxrates.database.models import ExchangeRateRow
from fxrates.rates.models import RateRecord, RateSource, quantize_rate
from fxrates.utils.errors import ValidationError
from fxrates.utils.logging import get_logger
from fxrates.utils.validation import validate_currency_code, validate_rate

logger = get_logger(__name__)

_UPSERT_DIALECTS = {"sqlite": sqlite_insert, "postgresql": pg_insert}
_UPDATED_COLUMNS = (
    "rate",
    "source",
    "provider_name",
    "fetched_at",
    "expires_at",
    "is_stale",
    "fetch_error_count",
    "updated_at",
)


def utcnow() -> datetime:
    """Current time as naive UTC, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class RateStore:
    """Repository for cached exchange rates."""

    def __init__(self, database: Database, clock: Callable[[], datetime] = utcnow):
        self.database = database
        self.clock = clock

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_fresh(self, from_currency: str, to_currency: str, as_of: date) -> Optional[RateRecord]:
        """Most recent usable record on or before ``as_of``.

        Manual rates never expire and win over live ones; live rates must
        still be inside their TTL window.
        """
        table = ExchangeRateRow
        with self.database.session() as session:
            manual = session.execute(
                select(table)
                .where(
                    table.from_currency == from_currency,
                    table.to_currency == to_currency,
                    table.rate_date <= as_of,
                    table.source == RateSource.MANUAL.value,
                )
                .order_by(table.rate_date.desc())
                .limit(1)
            ).scalar_one_or_none()
            if manual is not None:
                return _to_record(manual)

            live = session.execute(
                select(table)
                .where(
                    table.from_currency == from_currency,
                    table.to_currency == to_currency,
                    table.rate_date <= as_of,
                    table.source == RateSource.LIVE_API.value,
                    table.expires_at > self.clock(),
                )
                .order_by(table.rate_date.desc(), table.fetched_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _to_record(live) if live is not None else None

    def get_stale(self, from_currency: str, to_currency: str, as_of: date) -> Optional[RateRecord]:
        """Most recently fetched expired live record, swept or not."""
        table = ExchangeRateRow
        with self.database.session() as session:
            row = session.execute(
                select(table)
                .where(
                    table.from_currency == from_currency,
                    table.to_currency == to_currency,
                    table.rate_date <= as_of,
                    table.source == RateSource.LIVE_API.value,
                    or_(table.is_stale.is_(True), table.expires_at <= self.clock()),
                )
                .order_by(table.rate_date.desc(), table.fetched_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            return _to_record(row) if row is not None else None

    def is_cache_valid(self, from_currency: str, to_currency: str, as_of: Optional[date] = None) -> bool:
        return self.get_fresh(from_currency, to_currency, as_of or self.clock().date()) is not None

    def get_all_rates(self, base_currency: str, as_of: Optional[date] = None) -> Dict[str, Decimal]:
        """Fresh rates for every quote currency cached against ``base_currency``."""
        as_of = as_of or self.clock().date()
        table = ExchangeRateRow
        with self.database.session() as session:
            rows = session.execute(
                select(table)
                .where(
                    table.from_currency == base_currency,
                    table.rate_date <= as_of,
                    or_(
                        table.source == RateSource.MANUAL.value,
                        table.expires_at > self.clock(),
                    ),
                )
                .order_by(table.rate_date.asc())
            ).scalars().all()

        rates: Dict[str, Decimal] = {}
        # Live rows first so manual overrides are applied last
        for row in sorted(rows, key=lambda r: r.source == RateSource.MANUAL.value):
            rates[row.to_currency] = row.rate
        return rates

    def list_records(
        self,
        from_currency: Optional[str] = None,
        to_currency: Optional[str] = None,
    ) -> List[RateRecord]:
        table = ExchangeRateRow
        stmt = select(table).order_by(table.from_currency, table.to_currency, table.rate_date)
        if from_currency:
            stmt = stmt.where(table.from_currency == from_currency)
        if to_currency:
            stmt = stmt.where(table.to_currency == to_currency)
        with self.database.session() as session:
            return [_to_record(row) for row in session.execute(stmt).scalars().all()]

    def count(self) -> int:
        with self.database.session() as session:
            return session.execute(select(func.count()).select_from(ExchangeRateRow)).scalar_one()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, record: RateRecord) -> None:
        """Insert or update one record by its natural key."""
        self.upsert_many([record])

    def upsert_pair(self, record: RateRecord) -> None:
        """Write ``record`` and its inverse in one transaction."""
        record.validate()
        self.upsert_many([record, record.inverse()])

    def upsert_many(self, records: Iterable[RateRecord]) -> None:
        records = list(records)
        for record in records:
            record.validate()
        with self.database.session() as session:
            for record in records:
                self._upsert_row(session, record)
        logger.debug(f"Upserted {len(records)} rate record(s)")

    def set_manual(
        self,
        from_currency: str,
        to_currency: str,
        rate: Union[Decimal, float, str],
        on: Optional[date] = None,
    ) -> RateRecord:
        """Store a permanent override, replacing any record with the same key."""
        from_currency = validate_currency_code(from_currency)
        to_currency = validate_currency_code(to_currency)
        if from_currency == to_currency:
            raise ValidationError("Base and quote currencies cannot be the same")

        record = RateRecord(
            from_currency=from_currency,
            to_currency=to_currency,
            rate_date=on or self.clock().date(),
            rate=quantize_rate(validate_rate(rate)),
            source=RateSource.MANUAL,
        )
        self.upsert(record)
        logger.info(f"Manual rate set: {from_currency}->{to_currency} = {record.rate}")
        return record

    def sweep_expired(self) -> int:
        """Flag every expired live record as stale. Returns affected count."""
        table = ExchangeRateRow
        with self.database.session() as session:
            result = session.execute(
                update(table)
                .where(
                    table.source == RateSource.LIVE_API.value,
                    table.expires_at <= self.clock(),
                    table.is_stale.is_(False),
                )
                .values(is_stale=True)
            )
            count = result.rowcount or 0
        if count:
            logger.info(f"Marked {count} expired rate(s) as stale")
        return count

    def record_fetch_error(self, from_currency: str, to_currency: str) -> int:
        """Bump ``fetch_error_count`` on the pair's live records."""
        table = ExchangeRateRow
        with self.database.session() as session:
            result = session.execute(
                update(table)
                .where(
                    table.from_currency == from_currency,
                    table.to_currency == to_currency,
                    table.source == RateSource.LIVE_API.value,
                )
                .values(fetch_error_count=table.fetch_error_count + 1)
            )
            return result.rowcount or 0

    def clear_live_rates(self) -> int:
        """Delete all live records, keeping manual overrides."""
        table = ExchangeRateRow
        with self.database.session() as session:
            result = session.execute(delete(table).where(table.source == RateSource.LIVE_API.value))
            count = result.rowcount or 0
        logger.info(f"Deleted {count} live rate(s)")
        return count

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _upsert_row(self, session: Session, record: RateRecord) -> None:
        table = ExchangeRateRow.__table__
        values = {
            "from_currency": record.from_currency,
            "to_currency": record.to_currency,
            "rate_date": record.rate_date,
            "rate": record.rate,
            "source": record.source.value,
            "provider_name": record.provider_name,
            "fetched_at": record.fetched_at,
            "expires_at": record.expires_at,
            "is_stale": record.is_stale,
            "fetch_error_count": record.fetch_error_count,
            "updated_at": self.clock(),
        }
        # Live refreshes must not clobber a manual override for the same day
        guard = table.c.source != RateSource.MANUAL.value if record.source == RateSource.LIVE_API else None

        insert_fn = _UPSERT_DIALECTS.get(session.get_bind().dialect.name)
        if insert_fn is not None:
            stmt = insert_fn(table).values(**values)
            stmt = stmt.on_conflict_do_update(
                index_elements=[table.c.from_currency, table.c.to_currency, table.c.rate_date],
                set_={name: stmt.excluded[name] for name in _UPDATED_COLUMNS},
                where=guard,
            )
            session.execute(stmt)
            return

        existing = session.execute(
            select(ExchangeRateRow)
            .where(
                ExchangeRateRow.from_currency == record.from_currency,
                ExchangeRateRow.to_currency == record.to_currency,
                ExchangeRateRow.rate_date == record.rate_date,
            )
            .with_for_update()
        ).scalar_one_or_none()
        if existing is None:
            session.add(ExchangeRateRow(**values))
        elif guard is None or existing.source != RateSource.MANUAL.value:
            for name in _UPDATED_COLUMNS:
                setattr(existing, name, values[name])


def _to_record(row: ExchangeRateRow) -> RateRecord:
    return RateRecord(
        from_currency=row.from_currency,
        to_currency=row.to_currency,
        rate_date=row.rate_date,
        rate=Decimal(row.rate),
        source=RateSource(row.source),
        provider_name=row.provider_name,
        fetched_at=row.fetched_at,
        expires_at=row.expires_at,
        is_stale=bool(row.is_stale),
        fetch_error_count=row.fetch_error_count or 0,
    )
