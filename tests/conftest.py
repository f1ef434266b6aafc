from __future__ import annotations

import uuid
from collections.abc import Callable, Generator
from datetime import datetime

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Table, create_engine, insert
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from analytics_service.core.config import get_settings
from analytics_service.db.base import Base
from analytics_service.db.dependencies import get_db_session
from analytics_service.main import create_app
from analytics_service.models.entities import (
    Camera,
    CleaningArea,
    Contract,
    Driver,
    LprEvent,
    Organization,
    OrganizationType,
    Polygon,
    Ticket,
    Trip,
    TripViolation,
    Vehicle,
    VolumeEvent,
)
from analytics_service.models.rollups import (
    contract_usage,
    mv_cleaning_area_daily,
    mv_trip_daily,
    mv_violation_daily,
)

OPERATIONAL_TABLES = [
    Organization.__table__,
    Driver.__table__,
    Vehicle.__table__,
    Polygon.__table__,
    Camera.__table__,
    CleaningArea.__table__,
    Contract.__table__,
    Ticket.__table__,
    LprEvent.__table__,
    VolumeEvent.__table__,
    Trip.__table__,
    TripViolation.__table__,
]

ROLLUP_TABLES = [mv_trip_daily, mv_violation_daily, mv_cleaning_area_daily, contract_usage]

ALL_TABLES = OPERATIONAL_TABLES + ROLLUP_TABLES


def _session_with(tables: list[Table]) -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=tables)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=tables)
        engine.dispose()


def _client_for(session: Session) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield session

    app.dependency_overrides[get_db_session] = override_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    yield from _session_with(ALL_TABLES)


@pytest.fixture()
def operational_session() -> Generator[Session, None, None]:
    """Operational tables only; every rollup relation is missing."""

    yield from _session_with(OPERATIONAL_TABLES)


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    yield from _client_for(db_session)


@pytest.fixture()
def operational_client(operational_session: Session) -> Generator[TestClient, None, None]:
    yield from _client_for(operational_session)


@pytest.fixture()
def token_headers() -> Callable[..., dict[str, str]]:
    def build(role: str, org_id: uuid.UUID | None = None, *, user_id: uuid.UUID | None = None) -> dict[str, str]:
        claims: dict[str, str] = {"user_id": str(user_id or uuid.uuid4()), "role": role}
        if org_id is not None:
            claims["org_id"] = str(org_id)
        settings = get_settings()
        token = jwt.encode(claims, settings.auth_access_secret, algorithm=settings.auth_algorithm)
        return {"Authorization": f"Bearer {token}"}

    return build


class Seeder:
    """Row builders for analytics fixtures; every method commits."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _add(self, row):
        self.db.add(row)
        self.db.commit()
        return row

    def _insert(self, table: Table, **values) -> None:
        self.db.execute(insert(table).values(**values))
        self.db.commit()

    def organization(
        self,
        name: str,
        type_: OrganizationType = OrganizationType.CONTRACTOR,
        *,
        parent: Organization | None = None,
        is_active: bool = True,
    ) -> Organization:
        return self._add(
            Organization(
                name=name,
                type=type_.value,
                parent_org_id=parent.id if parent else None,
                is_active=is_active,
            )
        )

    def driver(self, full_name: str, contractor: Organization | None = None) -> Driver:
        return self._add(Driver(full_name=full_name, contractor_id=contractor.id if contractor else None))

    def vehicle(
        self,
        plate_number: str,
        contractor: Organization | None = None,
        *,
        body_volume_m3: float | None = 20.0,
    ) -> Vehicle:
        return self._add(
            Vehicle(
                plate_number=plate_number,
                body_volume_m3=body_volume_m3,
                contractor_id=contractor.id if contractor else None,
            )
        )

    def polygon(self, name: str) -> Polygon:
        return self._add(Polygon(name=name))

    def camera(self, name: str, polygon: Polygon | None = None) -> Camera:
        return self._add(Camera(name=name, polygon_id=polygon.id if polygon else None))

    def cleaning_area(self, name: str, *, geometry: str | None = None) -> CleaningArea:
        return self._add(CleaningArea(name=name, description=f"{name} district", geometry=geometry))

    def ticket(
        self,
        contractor: Organization | None,
        *,
        created_by: Organization | None = None,
        area: CleaningArea | None = None,
        status: str = "IN_PROGRESS",
        name: str = "Snow removal",
    ) -> Ticket:
        return self._add(
            Ticket(
                name=name,
                status=status,
                contractor_id=contractor.id if contractor else None,
                created_by_org_id=created_by.id if created_by else None,
                cleaning_area_id=area.id if area else None,
            )
        )

    def trip(
        self,
        ticket: Ticket | None,
        entry_at: datetime,
        *,
        exit_at: datetime | None = None,
        driver: Driver | None = None,
        vehicle: Vehicle | None = None,
        camera: Camera | None = None,
        polygon: Polygon | None = None,
        volume: float | None = None,
        status: str = "OK",
        **extra,
    ) -> Trip:
        return self._add(
            Trip(
                ticket_id=ticket.id if ticket else None,
                driver_id=driver.id if driver else None,
                vehicle_id=vehicle.id if vehicle else None,
                camera_id=camera.id if camera else None,
                polygon_id=polygon.id if polygon else None,
                status=status,
                entry_at=entry_at,
                exit_at=exit_at,
                detected_volume_entry=volume,
                **extra,
            )
        )

    def violation(self, trip: Trip, type_: str, detected_at: datetime, *, source: str = "LPR") -> TripViolation:
        return self._add(TripViolation(trip_id=trip.id, type=type_, source=source, detected_at=detected_at))

    def lpr_event(self, camera: Camera, detected_at: datetime, *, plate_number: str = "001AAA01") -> LprEvent:
        return self._add(LprEvent(camera_id=camera.id, plate_number=plate_number, detected_at=detected_at))

    def volume_event(self, camera: Camera, detected_at: datetime, *, volume_m3: float = 12.0) -> VolumeEvent:
        return self._add(VolumeEvent(camera_id=camera.id, volume_m3=volume_m3, detected_at=detected_at))

    def contract(
        self,
        name: str,
        contractor: Organization,
        *,
        start_at: datetime,
        end_at: datetime,
        budget_total: float = 1000.0,
        minimal_volume_m3: float = 100.0,
        created_by: Organization | None = None,
    ) -> Contract:
        return self._add(
            Contract(
                name=name,
                contractor_id=contractor.id,
                created_by_org_id=created_by.id if created_by else None,
                budget_total=budget_total,
                minimal_volume_m3=minimal_volume_m3,
                start_at=start_at,
                end_at=end_at,
            )
        )

    def contract_usage(self, contract: Contract, *, total_cost: float, total_volume_m3: float) -> None:
        self._insert(contract_usage, contract_id=contract.id, total_cost=total_cost, total_volume_m3=total_volume_m3)

    def trip_daily(self, bucket: datetime, *, total_trips: int, total_volume_m3: float = 0.0, **columns) -> None:
        self._insert(
            mv_trip_daily,
            bucket=bucket,
            total_trips=total_trips,
            total_volume_m3=total_volume_m3,
            violation_count=columns.pop("violation_count", 0),
            **columns,
        )

    def violation_daily(self, bucket: datetime, violation_type: str, count: int, **columns) -> None:
        self._insert(
            mv_violation_daily,
            bucket=bucket,
            violation_type=violation_type,
            violation_count=count,
            **columns,
        )

    def area_daily(self, bucket: datetime, area: CleaningArea, **columns) -> None:
        self._insert(mv_cleaning_area_daily, bucket=bucket, cleaning_area_id=area.id, **columns)


@pytest.fixture()
def seed(db_session: Session) -> Seeder:
    return Seeder(db_session)


@pytest.fixture()
def operational_seed(operational_session: Session) -> Seeder:
    return Seeder(operational_session)
