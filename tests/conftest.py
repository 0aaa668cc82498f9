import itertools

import pytest

from kamkunji.app import create_app
from kamkunji.clients.gateway import PAYMENT_PENDING, PaymentQueryResult, StkPushResult
from kamkunji.core.config import AppConfig, Config, DatabaseConfig, PaymentPollConfig, SecurityConfig
from kamkunji.core.dependencies import get_service
from kamkunji.repositories.cart_repository import CartRepository
from kamkunji.repositories.category_repository import CategoryRepository
from kamkunji.repositories.product_repository import ProductRepository
from kamkunji.repositories.user_repository import UserRepository

SETUP_TOKEN = "setup-token-for-tests"


class FakeGateway:
    """Records STK pushes; answers like the aggregator unless told otherwise"""

    name = "fake"

    def __init__(self, confirmed=True, supports_status_query=False):
        self.confirmed = confirmed
        self.supports_status_query = supports_status_query
        self.calls = []
        self.queries = []
        self.error = None
        self.query_result = PaymentQueryResult(PAYMENT_PENDING)

    def stk_push(self, phone, amount, order_id=None):
        self.calls.append({"phone": phone, "amount": amount, "order_id": order_id})
        if self.error is not None:
            raise self.error
        n = len(self.calls)
        return StkPushResult(
            checkout_request_id=f"ws_CO_TEST_{n}",
            reference=f"REF{n}",
            customer_message="Success. Request accepted for processing",
            confirmed=self.confirmed,
        )

    def query_status(self, checkout_request_id):
        self.queries.append(checkout_request_id)
        return self.query_result


class FakeEmailClient:
    name = "fake-email"

    def __init__(self):
        self.sent = []
        self.error = None

    def send(self, to, subject, html, text=None):
        if self.error is not None:
            raise self.error
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})
        return f"msg_{len(self.sent)}"


@pytest.fixture
def config(tmp_path):
    return Config(
        environment="testing",
        database=DatabaseConfig(url=f"sqlite:///{tmp_path / 'kamkunji-test.db'}"),
        app=AppConfig(environment="testing", auto_create_tables=True),
        security=SecurityConfig(secret_key="test-secret", admin_setup_token=SETUP_TOKEN),
        payment_poll=PaymentPollConfig(enabled=False),
    )


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def email_client():
    return FakeEmailClient()


@pytest.fixture
def app(config, gateway, email_client):
    return create_app(config, gateway=gateway, email_client=email_client)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    """service(SomeService) -> the app's wired instance"""
    return lambda cls: get_service(cls, app)


@pytest.fixture
def make_user(app):
    repo = get_service(UserRepository, app)
    counter = itertools.count(1)

    def _make(role="user", email=None, full_name=None):
        n = next(counter)
        return repo.create(
            email or f"{role}{n}@kamkunji.co.ke",
            full_name or f"Test {role.title()} {n}",
            None,
            phone="0712345678",
            role=role,
        )

    return _make


@pytest.fixture
def make_category(app):
    repo = get_service(CategoryRepository, app)
    counter = itertools.count(1)

    def _make(name=None, icon="📦"):
        return repo.create(name or f"Category {next(counter)}", icon, None)

    return _make


@pytest.fixture
def make_product(app):
    repo = get_service(ProductRepository, app)
    counter = itertools.count(1)

    def _make(status="approved", price="1500.00", stock=1, category_id=None,
              name=None, description=None, featured=False, images=None):
        n = next(counter)
        with repo.transaction() as conn:
            product_id = repo.create(
                {
                    "name": name or f"Product {n}",
                    "description": description or f"Second-hand item number {n}",
                    "price": price,
                    "category_id": category_id,
                    "seller_id": None,
                    "stock_quantity": stock,
                    "is_featured": featured,
                    "condition": "used",
                    "location": "Nairobi",
                    "phone": None,
                    "status": status,
                },
                conn,
            )
            urls = images if images is not None else [f"https://img.kamkunji.co.ke/{n}/a.jpg"]
            repo.add_images(product_id, urls, conn)
        return product_id

    return _make


@pytest.fixture
def fill_cart(app):
    repo = get_service(CartRepository, app)

    def _fill(user_id, *lines):
        """lines are (product_id, quantity) pairs"""
        for product_id, quantity in lines:
            repo.insert_item(user_id, product_id, quantity)

    return _fill


@pytest.fixture
def admin_headers(make_user):
    return {"X-User-Id": str(make_user(role="admin"))}


SHIPPING = {
    "full_name": "Wanjiku Kamau",
    "email": "wanjiku@kamkunji.co.ke",
    "phone": "0712345678",
    "address": "Moi Avenue, House 4",
    "city": "Nairobi",
}


@pytest.fixture
def shipping():
    return dict(SHIPPING)
