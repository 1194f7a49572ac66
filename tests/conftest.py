"""Shared fixtures for the ledger tests."""

from decimal import Decimal

import pytest

from billing_ledger.models import Client, Product
from billing_ledger.repository import Repository

from tests.factories import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client():
    return Client(id="client-1", name="Tienda La Esquina")


@pytest.fixture
def clients(client):
    return Repository([client])


@pytest.fixture
def products():
    return Repository([
        Product(
            id="prod-coffee",
            description="Coffee 500g",
            sale_price=Decimal("12000"),
            stock=Decimal("10"),
            barcode="7701234567890",
        ),
        Product(
            id="prod-sugar",
            description="Sugar 1kg",
            sale_price=Decimal("4000"),
            stock=Decimal("5"),
        ),
    ])
