"""Shared test configuration."""

import copy
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure the project root is in the path so imports work
project_root = Path(__file__).parent.parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from stocksync.database.models import Base  # noqa: E402


BASE_STOCK_RECORD = {
    "vehicle": {
        "registration": "AB19CDE",
        "vin": "WF0XXXGCDXKA12345",
        "make": "Ford",
        "model": "Focus",
        "derivative": "1.0 EcoBoost Titanium 5dr",
        "yearOfManufacture": 2019,
        "odometerReadingMiles": 32000,
        "fuelType": "Petrol",
        "transmissionType": "Manual",
        "bodyType": "Hatchback",
        "colour": "Blue",
        "doors": 5,
        "roadTax": "£165",
        "badgeEngineSizeLitres": 1.0,
    },
    "media": {
        "images": [
            {"href": "https://images.autotrader.co.uk/{resize}/focus-front.jpg"},
            {"href": "https://images.autotrader.co.uk/{resize}/focus-rear.jpg"},
        ],
    },
    "adverts": {
        "retailAdverts": {
            "totalPrice": {"amount": 12995},
            "attentionGrabber": "Low mileage, full history",
            "description": "One owner from new.Features:Heated SeatsParking Sensors",
        },
    },
    "metadata": {"stockId": "STK-A", "lifecycleState": "FORECOURT"},
}


@pytest.fixture
def stock_record():
    """Factory for provider stock records. Keyword overrides patch the nested groups."""

    def make(stock_id="STK-A", **overrides):
        record = copy.deepcopy(BASE_STOCK_RECORD)
        record["metadata"]["stockId"] = stock_id
        for group, values in overrides.items():
            if isinstance(values, dict):
                record.setdefault(group, {}).update(values)
            else:
                record[group] = values
        return record

    return make


@pytest.fixture
def test_session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestSession = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    return TestSession


@pytest.fixture
def db(test_session):
    session = test_session()
    yield session
    session.close()
