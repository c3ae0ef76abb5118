from .customers import DeliveryCustomer
from .catalog import DeliveryProduct
from .cart import CartItem, CartReminder
from .scheduling import DeliveryWindow, WeeklyDeliveryTemplate
from .promotions import Promotion, PromotionUsage
from .orders import DeliveryOrder, DeliveryOrderItem
from .settings import Setting

__all__ = [
    'DeliveryCustomer',
    'DeliveryProduct',
    'CartItem', 'CartReminder',
    'DeliveryWindow', 'WeeklyDeliveryTemplate',
    'Promotion', 'PromotionUsage',
    'DeliveryOrder', 'DeliveryOrderItem',
    'Setting',
]
