import pytest
from datetime import date, timedelta
from unittest.mock import Mock
from httpx import AsyncClient, ASGITransport
from app.main import app
from app.auth.middleware import verify_token
from app.auth.models import JWTPayload
from app.bookings.notifications import BookingNotifier
from app.bookings.router import get_booking_service
from app.bookings.service import BookingService
from app.db.models import Booking, Nanny
from app.payroll.router import get_payroll_service
from app.payroll.service import PayrollService
from app.utils.timezone import utc_now


class InMemoryBookingRepository:
    """Stands in for BookingRepository with the same async methods"""

    def __init__(self):
        self.bookings = {}
        self._next_id = 1

    def add(self, **fields) -> Booking:
        """Seed a booking without going through the service"""
        booking = Booking(**fields)
        self._fill_defaults(booking)
        booking.id = fields.get("id", self._next_id)
        self._next_id = max(self._next_id, booking.id) + 1
        self.bookings[booking.id] = booking
        return booking

    @staticmethod
    def _fill_defaults(booking):
        for column in Booking.__table__.columns:
            if getattr(booking, column.key) is None and column.default is not None:
                value = column.default.arg
                setattr(booking, column.key, utc_now() if callable(value) else value)

    async def create(self, booking):
        self._fill_defaults(booking)
        booking.id = self._next_id
        self._next_id += 1
        self.bookings[booking.id] = booking
        return booking

    async def get_by_id(self, booking_id, include_deleted=False):
        booking = self.bookings.get(booking_id)
        if booking is None or (booking.deleted_at and not include_deleted):
            return None
        return booking

    def _live(self):
        return [b for b in self.bookings.values() if b.deleted_at is None]

    async def list_for_nanny_on_date(self, nanny_id, day):
        return [b for b in self._live() if b.nanny_id == nanny_id and b.date == day]

    async def list_on_date(self, day):
        return [b for b in self._live() if b.date == day and b.nanny_id is not None]

    async def list_for_nanny(self, nanny_id, limit=500):
        found = [b for b in self._live() if b.nanny_id == nanny_id]
        return sorted(found, key=lambda b: b.date, reverse=True)[:limit]

    async def get_active_shift(self, nanny_id):
        for b in self._live():
            if b.nanny_id == nanny_id and b.clock_in and not b.clock_out and b.status != "cancelled":
                return b
        return None

    async def clock_in_if_no_active_shift(self, booking, clock_in):
        active = await self.get_active_shift(booking.nanny_id)
        if booking.clock_in or (active is not None and active.id != booking.id):
            return False
        booking.clock_in = clock_in
        return True

    async def update(self, booking):
        booking.updated_at = utc_now()
        return booking

    async def soft_delete(self, booking, deleted_by):
        booking.deleted_at = utc_now()
        booking.deleted_by = deleted_by
        return booking

    async def restore(self, booking):
        booking.deleted_at = None
        booking.deleted_by = ""
        return booking

    async def list_for_payroll(self, from_date, to_date, nanny_ids=None, statuses=None):
        found = []
        for b in self._live():
            if b.status == "cancelled" or b.date > to_date:
                continue
            if from_date and b.date < from_date:
                continue
            if nanny_ids and b.nanny_id not in nanny_ids:
                continue
            if statuses and b.status not in statuses:
                continue
            found.append(b)
        return found


class InMemoryNannyRepository:
    """Stands in for NannyRepository"""

    def __init__(self):
        self.nannies = {}
        self.blocked = {}

    def add(self, id, name, rate=10.0, status="active", email=None, phone=""):
        nanny = Nanny(id=id, name=name, rate=rate, status=status, email=email, phone=phone, available=True)
        self.nannies[id] = nanny
        return nanny

    def block(self, nanny_id, *days):
        self.blocked.setdefault(nanny_id, []).extend(days)

    async def get_by_id(self, nanny_id):
        return self.nannies.get(nanny_id)

    async def get_by_ids(self, nanny_ids):
        return {i: self.nannies[i] for i in nanny_ids if i in self.nannies}

    async def list_active(self):
        return sorted((n for n in self.nannies.values() if n.status == "active"), key=lambda n: n.name)

    async def list_all(self):
        return sorted(self.nannies.values(), key=lambda n: n.name)

    async def get_blocked_dates(self, nanny_id):
        return list(self.blocked.get(nanny_id, []))


@pytest.fixture
def booking_repo():
    return InMemoryBookingRepository()


@pytest.fixture
def nanny_repo():
    repo = InMemoryNannyRepository()
    repo.add(1, "Sara", rate=10.0, email="sara@example.com", phone="0600000001")
    repo.add(2, "Amina", rate=12.0, email="amina@example.com")
    repo.add(3, "Leila", rate=10.0, status="blocked")
    return repo


@pytest.fixture
def publisher():
    return Mock()


@pytest.fixture
def service(booking_repo, nanny_repo, publisher):
    return BookingService(
        repository=booking_repo,
        nannies=nanny_repo,
        notifier=BookingNotifier(publisher),
    )


@pytest.fixture
def payroll_service(booking_repo, nanny_repo):
    return PayrollService(repository=booking_repo, nannies=nanny_repo)


@pytest.fixture
def next_week():
    return date.today() + timedelta(days=7)


@pytest.fixture
def admin_payload():
    return JWTPayload(
        sub="admin-1",
        name="Office",
        roles=["admin"],
        permissions=[
            "booking:create", "booking:read", "booking:confirm", "booking:clock",
            "booking:complete", "booking:cancel", "booking:reassign", "booking:extend",
            "booking:update", "booking:delete", "booking:remind",
            "payroll:read", "payroll:export", "payroll:self",
        ],
    )


@pytest.fixture
def nanny_payload():
    return JWTPayload(
        sub="nanny-1",
        name="Sara",
        nanny_id=1,
        roles=["nanny"],
        permissions=["booking:read", "booking:clock", "booking:complete", "booking:cancel", "booking:extend", "payroll:self"],
    )


@pytest.fixture
def parent_payload():
    return JWTPayload(
        sub="parent-1",
        name="Jane",
        roles=["parent"],
        permissions=["booking:create", "booking:read", "booking:cancel", "booking:extend"],
    )


@pytest.fixture(scope="function")
async def client(service, payroll_service):
    """Create a test client with the services bound to the in-memory store."""
    app.dependency_overrides[get_booking_service] = lambda: service
    app.dependency_overrides[get_payroll_service] = lambda: payroll_service

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def as_user():
    """Authenticate subsequent requests as the given payload."""
    def _as(payload):
        app.dependency_overrides[verify_token] = lambda: payload
    return _as


@pytest.fixture
def auth_headers():
    return {"Authorization": "Bearer mock_token"}
