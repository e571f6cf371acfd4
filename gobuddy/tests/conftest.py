"""
Pytest configuration and fixtures for GoBuddy settlement service tests.
"""
import os

# Keep the app off the on-disk database and off RabbitMQ while testing
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENABLE_EVENT_CONSUMER", "false")
os.environ.setdefault("ENABLE_EVENT_PUBLISHING", "false")
os.environ.setdefault("ENABLE_OVERDUE_CHECK", "false")

import pytest
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Optional
from unittest.mock import Mock
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gobuddy.db.database import Base
from gobuddy.db.data_service import DataService
from gobuddy.models import commissions, errands, ratings, settlements, users  # noqa: F401
from gobuddy.services.auth.jwt_handler import create_access_token
from gobuddy.utils.settlement_builder import CalculatedSettlement

RUNNER_ID = "runner-1"
OTHER_RUNNER_ID = "runner-2"
CALLER_ID = "caller-1"
ADMIN_ID = "admin-1"


@pytest.fixture
def db_engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def data_service(db_session):
    return DataService(db_session)


@pytest.fixture
def users_in_db(data_service):
    """A caller, two runners and an admin."""
    for user_id, role in (
        (CALLER_ID, "buddycaller"),
        (RUNNER_ID, "buddyrunner"),
        (OTHER_RUNNER_ID, "buddyrunner"),
        (ADMIN_ID, "admin"),
    ):
        data_service.insert("users", {"id": user_id, "role": role})
    return data_service


@pytest.fixture
def mock_data_service():
    """Mock data service for testing the reconciler create path."""
    service = Mock()
    service.insert = Mock()
    service.select = Mock(return_value=[])
    service.update = Mock(return_value=[])
    return service


@pytest.fixture
def calculated_nov1():
    """Runner U1, period 2025-11-01..2025-11-05."""
    return CalculatedSettlement(
        user_id="U1",
        period_start_date=date(2025, 11, 1),
        period_end_date=date(2025, 11, 5),
        total_earnings=Decimal("150.00"),
        total_transactions=2,
        system_fees=Decimal("22.40"),
        errand_ids=["e1", "e2"],
    )


@pytest.fixture
def existing_nov1():
    return {
        "id": "s-1",
        "user_id": "U1",
        "period_start_date": date(2025, 11, 1),
        "period_end_date": date(2025, 11, 5),
        "total_earnings": Decimal("150.00"),
        "total_transactions": 2,
        "system_fees": Decimal("22.40"),
        "errand_ids": ["e1", "e2"],
        "status": "pending",
    }


def make_errand(
    data_service: DataService,
    errand_id: str,
    runner_id: Optional[str] = RUNNER_ID,
    completed_at: datetime = datetime(2025, 11, 6, 10, 0),
    amount_price: Optional[Decimal] = Decimal("100.00"),
    status: str = "completed",
    category: str = "School Materials",
    items: Optional[list] = None,
    **extra,
) -> Dict:
    """Insert an errand row; defaults to a completed ₱100 errand on 2025-11-06."""
    row = {
        "id": errand_id,
        "buddycaller_id": CALLER_ID,
        "runner_id": runner_id,
        "category": category,
        "items": items if items is not None else [{"name": "Yellowpad", "quantity": 1}],
        "amount_price": amount_price,
        "status": status,
        "completed_at": completed_at,
    }
    row.update(extra)
    return data_service.insert("errands", row)



def make_commission(
    data_service: DataService,
    commission_id: str,
    runner_id: Optional[str] = RUNNER_ID,
    completed_at: datetime = datetime(2025, 11, 7, 15, 0),
    invoice_amount: Optional[Decimal] = Decimal("117.00"),
    status: str = "completed",
    invoice_status: str = "accepted",
) -> Dict:
    """Insert a commission and, unless invoice_amount is None, its invoice."""
    row = data_service.insert("commission", {
        "id": commission_id,
        "buddycaller_id": CALLER_ID,
        "runner_id": runner_id,
        "title": "Poster layout",
        "status": status,
        "completed_at": completed_at,
    })
    if invoice_amount is not None:
        data_service.insert("invoices", {
            "commission_id": commission_id,
            "amount": invoice_amount,
            "status": invoice_status,
            "accepted_at": completed_at if invoice_status == "accepted" else None,
        })
    return row


def auth_headers(user_id: str, role: Optional[str] = None) -> Dict[str, str]:
    return {"access-token": create_access_token(user_id, role)}
