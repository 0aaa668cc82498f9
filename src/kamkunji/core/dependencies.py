from typing import Any, Callable, Dict, Optional, Type, TypeVar

from flask import current_app

from kamkunji.core.config import Config

T = TypeVar('T')

PAYMENT_GATEWAY = "payment_gateway"
EMAIL_CLIENT = "email_client"


class DependencyContainer:
    """Simple dependency injection container, one per application"""

    def __init__(self):
        self._services: Dict[str, Any] = {}
        self._factories: Dict[str, Callable[[], Any]] = {}

    def register_singleton(self, service_class, instance) -> None:
        """Register a singleton instance (class or string key)"""
        self._services[self._get_service_key(service_class)] = instance

    def register_factory(self, service_class, factory: Callable[[], Any]) -> None:
        """Register a factory; the first get() caches its result"""
        self._factories[self._get_service_key(service_class)] = factory

    def get(self, service_class: Type[T]) -> T:
        key = self._get_service_key(service_class)

        if key in self._services:
            return self._services[key]

        if key in self._factories:
            instance = self._factories[key]()
            self._services[key] = instance
            return instance

        raise ValueError(f"Service {key} not registered")

    def _get_service_key(self, service_class) -> str:
        if isinstance(service_class, str):
            return service_class
        return f"{service_class.__module__}.{service_class.__qualname__}"


def build_container(config: Config, gateway=None, email_client=None) -> DependencyContainer:
    """
    Wire repositories, clients and services.

    gateway/email_client replace the real vendor clients (tests pass fakes).
    """
    # Imported here so importing this module stays cheap for the app factory
    from kamkunji.clients.daraja_client import DarajaClient
    from kamkunji.clients.email_client import ResendEmailClient
    from kamkunji.clients.lipia_client import LipiaClient
    from kamkunji.repositories.cart_repository import CartRepository
    from kamkunji.repositories.category_repository import CategoryRepository
    from kamkunji.repositories.email_log_repository import EmailLogRepository
    from kamkunji.repositories.order_repository import OrderRepository
    from kamkunji.repositories.product_repository import ProductRepository
    from kamkunji.repositories.report_repository import ReportRepository
    from kamkunji.repositories.user_repository import UserRepository
    from kamkunji.repositories.wishlist_repository import WishlistRepository
    from kamkunji.services.cart_service import CartService
    from kamkunji.services.category_service import CategoryService
    from kamkunji.services.dashboard_service import DashboardService
    from kamkunji.services.email_service import EmailService
    from kamkunji.services.order_service import OrderService
    from kamkunji.services.payment_poller import PaymentPollerRegistry
    from kamkunji.services.payment_service import PaymentService
    from kamkunji.services.product_service import ProductService
    from kamkunji.services.report_service import ReportService
    from kamkunji.services.user_service import UserService
    from kamkunji.services.wishlist_service import WishlistService

    c = DependencyContainer()
    c.register_singleton(Config, config)

    for repo_class in (
        CartRepository, CategoryRepository, EmailLogRepository, OrderRepository,
        ProductRepository, ReportRepository, UserRepository, WishlistRepository,
    ):
        c.register_singleton(repo_class, repo_class())

    def _gateway():
        if gateway is not None:
            return gateway
        if config.payment_gateway == "daraja":
            return DarajaClient(config.mpesa)
        return LipiaClient(config.lipia)

    c.register_factory(PAYMENT_GATEWAY, _gateway)
    c.register_factory(EMAIL_CLIENT, lambda: email_client or ResendEmailClient(config.email))
    c.register_singleton(PaymentPollerRegistry, PaymentPollerRegistry())

    c.register_factory(PaymentService, lambda: PaymentService(c.get(PAYMENT_GATEWAY)))
    c.register_factory(EmailService, lambda: EmailService(c.get(EMAIL_CLIENT), c.get(EmailLogRepository)))
    c.register_factory(ProductService, lambda: ProductService(
        c.get(ProductRepository), c.get(CategoryRepository), config.api
    ))
    c.register_factory(CategoryService, lambda: CategoryService(
        c.get(CategoryRepository), c.get(ProductRepository), c.get(ProductService)
    ))
    c.register_factory(CartService, lambda: CartService(c.get(CartRepository), c.get(ProductRepository)))
    c.register_factory(WishlistService, lambda: WishlistService(
        c.get(WishlistRepository), c.get(ProductRepository)
    ))
    c.register_factory(UserService, lambda: UserService(c.get(UserRepository)))
    c.register_factory(ReportService, lambda: ReportService(c.get(ReportRepository), c.get(ProductRepository)))
    c.register_factory(OrderService, lambda: OrderService(
        c.get(OrderRepository),
        c.get(CartRepository),
        c.get(PaymentService),
        c.get(EmailService),
        c.get(PaymentPollerRegistry),
        config.payment_poll,
        config.api,
    ))
    c.register_factory(DashboardService, lambda: DashboardService(
        c.get(ProductService), c.get(OrderService), c.get(ReportService),
        c.get(UserService), c.get(CategoryService),
    ))
    return c


def get_container(app=None) -> DependencyContainer:
    """Container of the given (or current) Flask application"""
    return (app or current_app).extensions["kamkunji"]


def get_service(service_class: Type[T], app: Optional[Any] = None) -> T:
    return get_container(app).get(service_class)
