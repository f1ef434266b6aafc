from __future__ import annotations

from sqlalchemy.orm import Session

from analytics_service.db.availability import DataAvailability
from analytics_service.models.rollups import mv_trip_daily


def test_reports_present_and_missing_relations(operational_session: Session) -> None:
    availability = DataAvailability(operational_session)

    assert availability.exists("trips") is True
    assert availability.exists("mv_trip_daily") is False
    assert availability.all_exist("trips", "tickets") is True
    assert availability.all_exist("trips", "contract_usage") is False


def test_answers_are_memoized_per_instance(operational_session: Session) -> None:
    availability = DataAvailability(operational_session)
    assert availability.exists("mv_trip_daily") is False

    mv_trip_daily.create(bind=operational_session.connection())

    assert availability.exists("mv_trip_daily") is False
    assert DataAvailability(operational_session).exists("mv_trip_daily") is True
