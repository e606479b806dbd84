import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from app import create_app
from app.database import create_schema, get_session
from app.models import (
    Product, Restaurant, RestaurantFood, Coupon, DeliverySettings
)


@pytest.fixture(scope='function')
def app():
    """Create application instance for testing (fresh in-memory database)."""
    app = create_app('config.TestConfig')
    with app.app_context():
        create_schema()
    yield app
    get_session().remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session(app):
    """Database session for arranging and inspecting rows."""
    session = get_session()
    yield session
    session.rollback()


@pytest.fixture(scope='function')
def backend(app):
    """Store backend the app was built with (SqlBackend over SQLite)."""
    return app.extensions['store_backend']


@pytest.fixture(scope='function')
def product(session):
    """Grocery product priced at 100."""
    product = Product(name='Basmati Rice 1kg', price=Decimal('100.00'), stock=50, image='rice.png')
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def expensive_product(session):
    product = Product(name='Olive Oil 5L', price=Decimal('2500.00'), stock=5)
    session.add(product)
    session.commit()
    return product


@pytest.fixture(scope='function')
def restaurant_a(session):
    restaurant = Restaurant(name='Spice Route', image_url='spice.png')
    session.add(restaurant)
    session.commit()
    return restaurant


@pytest.fixture(scope='function')
def restaurant_b(session):
    restaurant = Restaurant(name='Noodle Bar')
    session.add(restaurant)
    session.commit()
    return restaurant


@pytest.fixture(scope='function')
def food_a(session, restaurant_a):
    """Menu item of restaurant A priced at 150."""
    food = RestaurantFood(restaurant_id=restaurant_a.id, name='Paneer Tikka', price=Decimal('150.00'))
    session.add(food)
    session.commit()
    return food


@pytest.fixture(scope='function')
def food_b(session, restaurant_b):
    """Menu item of restaurant B priced at 80."""
    food = RestaurantFood(restaurant_id=restaurant_b.id, name='Veg Noodles', price=Decimal('80.00'))
    session.add(food)
    session.commit()
    return food


@pytest.fixture(scope='function')
def coupon(session):
    """SAVE10: 10% off, capped at 15."""
    coupon = Coupon(
        code='SAVE10',
        description='10% off your groceries',
        discount_type='percentage',
        discount_value=Decimal('10'),
        max_discount_amount=Decimal('15'),
        usage_limit=100,
        used_count=0,
        is_active=True,
        valid_until=datetime.now(timezone.utc) + timedelta(days=30),
    )
    session.add(coupon)
    session.commit()
    return coupon


@pytest.fixture(scope='function')
def delivery_settings(session):
    """Active policy: 50 fee, free from 2000."""
    settings = DeliverySettings(
        delivery_fee=Decimal('50.00'),
        free_delivery_threshold=Decimal('2000.00'),
        is_active=True,
    )
    session.add(settings)
    session.commit()
    return settings


@pytest.fixture(scope='function')
def authenticated_client(client):
    """Client signed in as a customer."""
    with client.session_transaction() as sess:
        sess['user_id'] = 'user-1'
        sess['user_role'] = 'customer'
    return client


@pytest.fixture(scope='function')
def admin_client(app):
    """Separate client signed in as a store admin."""
    client = app.test_client()
    with client.session_transaction() as sess:
        sess['user_id'] = 'admin-1'
        sess['user_role'] = 'admin'
    return client
