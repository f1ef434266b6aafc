"""Daily rollup relations.

In production these are materialized views maintained outside this service,
so they are declared as Core tables without primary keys.
"""

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Table
from sqlalchemy.dialects.postgresql import UUID

from analytics_service.db.base import Base


def _uuid_column(name: str) -> Column:
    return Column(name, UUID(as_uuid=True), nullable=True)


def _volume_column(name: str) -> Column:
    return Column(name, Numeric(16, 3, asdecimal=False), nullable=True)


mv_trip_daily = Table(
    "mv_trip_daily",
    Base.metadata,
    Column("bucket", DateTime(timezone=True), nullable=False),
    _uuid_column("contractor_id"),
    _uuid_column("created_by_org_id"),
    _uuid_column("cleaning_area_id"),
    _uuid_column("driver_id"),
    _uuid_column("vehicle_id"),
    _uuid_column("polygon_id"),
    Column("total_trips", Integer, nullable=False, default=0),
    _volume_column("total_volume_m3"),
    Column("violation_count", Integer, nullable=False, default=0),
)

mv_violation_daily = Table(
    "mv_violation_daily",
    Base.metadata,
    Column("bucket", DateTime(timezone=True), nullable=False),
    _uuid_column("contractor_id"),
    _uuid_column("created_by_org_id"),
    _uuid_column("cleaning_area_id"),
    _uuid_column("driver_id"),
    Column("violation_type", String(64), nullable=False),
    Column("violation_count", Integer, nullable=False, default=0),
)

mv_cleaning_area_daily = Table(
    "mv_cleaning_area_daily",
    Base.metadata,
    Column("bucket", DateTime(timezone=True), nullable=False),
    _uuid_column("cleaning_area_id"),
    _uuid_column("contractor_id"),
    _uuid_column("created_by_org_id"),
    Column("total_trips", Integer, nullable=False, default=0),
    _volume_column("total_volume_m3"),
    Column("violation_count", Integer, nullable=False, default=0),
    Column("active_drivers", Integer, nullable=False, default=0),
    Column("active_vehicles", Integer, nullable=False, default=0),
    Column("first_entry_at", DateTime(timezone=True), nullable=True),
    Column("last_exit_at", DateTime(timezone=True), nullable=True),
)

contract_usage = Table(
    "contract_usage",
    Base.metadata,
    _uuid_column("contract_id"),
    Column("total_cost", Numeric(16, 2, asdecimal=False), nullable=True),
    _volume_column("total_volume_m3"),
)
