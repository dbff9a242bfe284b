from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from billing_lifecycle import models  # noqa: F401  register mappers
from billing_lifecycle.database import Base
from billing_lifecycle.lifecycle.actors import HumanActor
from billing_lifecycle.models import BillingPeriod, Plan, Subscription, SubscriptionStatus, UserRole

TODAY = date(2025, 6, 15)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_plan(db):
    def _make_plan(**overrides):
        data = {
            "name": "Plan Basico",
            "period": BillingPeriod.MONTHLY,
            "included_documents": 100,
            "price": 10,
            "min_documents_threshold": 5,
            "min_days_threshold": 5,
        }
        data.update(overrides)
        plan = Plan(**data)
        db.add(plan)
        db.commit()
        return plan

    return _make_plan


@pytest.fixture
def plan(make_plan):
    return make_plan()


@pytest.fixture
def make_subscription(db, plan):
    def _make_subscription(**overrides):
        data = {
            "tenant_id": 1,
            "plan": plan,
            "start_date": TODAY - timedelta(days=10),
            "end_date": TODAY + timedelta(days=20),
            "documents_allotted": 100,
            "documents_used": 0,
            "status": SubscriptionStatus.ACTIVE,
        }
        data.update(overrides)
        subscription = Subscription(**data)
        db.add(subscription)
        db.commit()
        return subscription

    return _make_subscription


@pytest.fixture
def admin():
    return HumanActor(id=1, role=UserRole.ADMINISTRATOR, client_ip="10.0.0.1", client_agent="pytest")


@pytest.fixture
def distributor():
    return HumanActor(id=2, role=UserRole.DISTRIBUTOR, client_ip="10.0.0.2", client_agent="pytest")


@pytest.fixture
def today():
    return TODAY
