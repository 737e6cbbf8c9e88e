import fnmatch
import os
import sys
from datetime import timedelta

import pytest
import redis

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'drayage_gateway.settings')
os.environ.setdefault('USE_SQLITE_FOR_TESTS', 'true')


class FakeRedis:
    """In-memory stand-in for the handful of redis-py calls the dedup store makes."""

    def __init__(self):
        self.values = {}
        self.expiry = {}

    def set(self, key, value, ex=None, nx=False):
        if nx and key in self.values:
            return None
        self.values[key] = str(value)
        if ex is not None:
            self.expiry[key] = ex
        else:
            self.expiry.pop(key, None)
        return True

    def get(self, key):
        return self.values.get(key)

    def exists(self, *keys):
        return sum(1 for key in keys if key in self.values)

    def delete(self, *keys):
        deleted = 0
        for key in keys:
            if key in self.values:
                del self.values[key]
                self.expiry.pop(key, None)
                deleted += 1
        return deleted

    def scan_iter(self, match=None, count=None):
        for key in list(self.values):
            if match is None or fnmatch.fnmatchcase(key, match):
                yield key

    def ttl(self, key):
        if key not in self.values:
            return -2
        return self.expiry.get(key, -1)


class FailingRedis:
    """Every call raises, as redis-py does when the server is unreachable."""

    def _fail(self, *args, **kwargs):
        raise redis.ConnectionError('Connection refused')

    set = get = exists = delete = scan_iter = ttl = _fail


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Route every IdempotencyStore.from_settings() to an in-memory client."""
    client = FakeRedis()
    monkeypatch.setattr('portpro.services.idempotency.get_redis_client', lambda: client)
    return client


@pytest.fixture
def quotes_employee(db):
    from notifications.models import Employee
    return Employee.objects.create(name='Quote Desk', email='quotes@example.com', permissions=['quotes'])


@pytest.fixture
def loads_employee(db):
    from notifications.models import Employee
    return Employee.objects.create(name='Dispatch', email='dispatch@example.com', permissions=['loads'])


@pytest.fixture
def super_admin(db):
    from notifications.models import Employee
    return Employee.objects.create(name='Owner', email='owner@example.com', is_super_admin=True)


@pytest.fixture
def make_quote(db):
    """Factory for saved quotes; `age` backdates created_at/updated_at."""
    from django.utils import timezone
    from quotes.models import Quote

    counter = {'n': 0}

    def _make(age=timedelta(0), **fields):
        counter['n'] += 1
        created = timezone.now() - age
        defaults = {
            'reference_number': f"Q-{counter['n']:04d}",
            'contact_name': 'Maria Lopez',
            'email': 'maria@example.com',
            'created_at': created,
            'updated_at': created,
        }
        defaults.update(fields)
        return Quote.objects.create(**defaults)

    return _make


@pytest.fixture
def vendor_load():
    """A full PortPro load record as returned by GET /loads."""
    return {
        '_id': '65b3f0c2a1',
        'reference_number': 'REF-123',
        'containerNo': 'MSCU1234567',
        'containerSize': {'label': "40'", 'name': '40'},
        'containerType': 'HC',
        'chassisNo': 'CH-88',
        'status': 'DISPATCHED',
        'caller': {'company_name': 'Acme Imports', 'email': 'ops@acme.example', 'phone': '555-0100'},
        'shipper': {'company_name': 'Port of Long Beach', 'address': {'city': 'Long Beach', 'state': 'CA'}},
        'consignee': {
            'company_name': 'Acme Warehouse',
            'address': {'address1': '100 Main St', 'city': 'Ontario', 'state': 'CA', 'zip': '91761'},
        },
        'deliveryTimes': [{'deliveryFromTime': '2026-01-28T16:00:00Z'}],
        'totalAmount': 1000,
        'expense': [{'finalAmount': 100}],
        'vendorPay': [{'pricing': [{'amount': 150}]}],
        'driverPay': [{'totalAmount': 200}],
        'updatedAt': '2026-01-26T10:00:00Z',
    }
