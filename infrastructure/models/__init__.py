"""Infrastructure models package exports."""
from .base import Base, metadata
from .order import OrderModel, OrderItemModel
from .payment import OrderPaymentModel, PaymentPlanModel
from .webhook_event import WebhookEventModel
from .inventory import ProductVariantModel, InventoryMovementModel, LowStockAlertModel
from .shipment import DeliveryShipmentModel

__all__ = [
    "Base",
    "metadata",
    "OrderModel",
    "OrderItemModel",
    "OrderPaymentModel",
    "PaymentPlanModel",
    "WebhookEventModel",
    "ProductVariantModel",
    "InventoryMovementModel",
    "LowStockAlertModel",
    "DeliveryShipmentModel",
]
