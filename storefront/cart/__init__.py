"""
Module 'cart': valeur panier explicite (pas d'état global navigateur).
"""
from .models import LineItem, Cart, money

__all__ = ["LineItem", "Cart", "money"]
