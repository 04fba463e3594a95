"""Boutique en ligne: catalogue, panier et orchestration du checkout Stripe/Supabase."""

__version__ = "0.1.0"
