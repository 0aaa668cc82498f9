from typing import Any, Dict
import logging

from kamkunji.services.category_service import CategoryService
from kamkunji.services.order_service import OrderService
from kamkunji.services.product_service import ProductService
from kamkunji.services.report_service import ReportService
from kamkunji.services.user_service import UserService

logger = logging.getLogger(__name__)


class DashboardService:
    """Aggregates for the admin dashboard"""

    def __init__(self, product_service: ProductService, order_service: OrderService,
                 report_service: ReportService, user_service: UserService,
                 category_service: CategoryService):
        self.product_service = product_service
        self.order_service = order_service
        self.report_service = report_service
        self.user_service = user_service
        self.category_service = category_service

    def dashboard_stats(self, recent_limit: int = 5) -> Dict[str, Any]:
        products = self.product_service.counts_by_status()
        orders = self.order_service.order_stats()
        return {
            "total_products": sum(products.values()),
            "pending_products": products["pending"],
            "approved_products": products["approved"],
            "rejected_products": products["rejected"],
            "open_reports": self.report_service.open_count(),
            "total_users": self.user_service.count_users(),
            "total_orders": orders["total_orders"],
            "total_revenue": orders["total_revenue"],
            "total_revenue_display": orders["total_revenue_display"],
            "recent_orders": self.order_service.recent_orders(recent_limit),
            "categories": self.category_service.categories_with_counts(),
        }
