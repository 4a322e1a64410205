import uuid
from datetime import date
import pytest
from carwithdriver.server import create_app
from carwithdriver.config import TestConfig
from carwithdriver.extensions import db
from carwithdriver.models.role import Role, RoleName
from carwithdriver.models.user import User
from carwithdriver.models.vehicle import Vehicle

# Reference "today" for service tests; every service accepts it explicitly
TODAY = date(2030, 6, 1)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def make_user(email, role_name, name=None):
    role = Role.query.filter_by(name=role_name).first()
    if not role:
        role = Role(name=role_name, description=f'{role_name} role')
        db.session.add(role)
    user = User(
        email=email,
        password='not-a-real-hash',
        fs_uniquifier=uuid.uuid4().hex,
        name=name or email.split('@')[0],
        roles=[role],
    )
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def admin(app):
    return make_user('admin@example.com', RoleName.ADMIN, 'Admin')


@pytest.fixture
def driver(app):
    return make_user('driver@example.com', RoleName.DRIVER, 'Nimal Perera')


@pytest.fixture
def other_driver(app):
    return make_user('driver2@example.com', RoleName.DRIVER, 'Kamal Silva')


@pytest.fixture
def traveler(app):
    return make_user('traveler@example.com', RoleName.TRAVELER, 'Jane Doe')


@pytest.fixture
def vehicle(driver):
    vehicle = Vehicle(driver_id=driver.id, model='Toyota Prius', price_per_day=500.0)
    db.session.add(vehicle)
    db.session.commit()
    return vehicle


@pytest.fixture
def booking_data(vehicle, traveler):
    """Direct booking for 15-18 June: 4 days at 500 = 2000"""
    def _build(**overrides):
        data = {
            'vehicle_id': vehicle.id,
            'traveler_id': traveler.id,
            'start_date': '2030-06-15',
            'end_date': '2030-06-18',
            'traveler_name': 'Jane Doe',
            'traveler_email': 'Jane@Example.com',
            'traveler_phone': '+94 77 123 4567',
        }
        data.update(overrides)
        return data
    return _build


class DummyCurrentUser:
    """Stands in for Flask-Security's current_user when views are called unwrapped"""
    def __init__(self, user, *roles):
        self.id = user.id
        self.roles = roles

    def has_role(self, role):
        return role in self.roles
