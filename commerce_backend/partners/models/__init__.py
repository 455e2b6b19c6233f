from .partner import Customer, Supplier

__all__ = ["Customer", "Supplier"]
