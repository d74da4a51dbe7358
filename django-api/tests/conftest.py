"""Pytest configuration and shared fixtures."""

from decimal import Decimal

import pytest
from rest_framework.test import APIClient

from fakes import FakeWorld
from scheduling import models as orm


@pytest.fixture
def world() -> FakeWorld:
    """In-memory stores and services, with service type 3 configured."""
    world = FakeWorld()
    world.pricing_store.add_service_type(3, entry="5000", trainer="3000")
    return world


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture
def admin_api(db, django_user_model) -> APIClient:
    user = django_user_model.objects.create_user(username="admin", password="x", is_staff=True)
    client = APIClient()
    client.force_authenticate(user=user)
    return client


@pytest.fixture
def room(db) -> orm.Room:
    return orm.Room.objects.create(name="Studio A")


@pytest.fixture
def other_room(db) -> orm.Room:
    return orm.Room.objects.create(name="Studio B")


@pytest.fixture
def trainer(db, django_user_model) -> orm.StaffMember:
    user = django_user_model.objects.create_user(username="trainer", password="x")
    return orm.StaffMember.objects.create(name="Trainer", user=user)


@pytest.fixture
def trainer_api(trainer) -> APIClient:
    client = APIClient()
    client.force_authenticate(user=trainer.user)
    return client


@pytest.fixture
def service_type(db) -> orm.ServiceType:
    return orm.ServiceType.objects.create(
        name="Personal training",
        default_entry_fee_brutto=Decimal("5000.00"),
        default_trainer_fee_brutto=Decimal("3000.00"),
    )
