from .payment import Payment
from .payment_line import PaymentLine

__all__ = ["Payment", "PaymentLine"]
