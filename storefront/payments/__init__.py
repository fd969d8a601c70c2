"""
Module 'payments' (feature-first): PaymentIntent Stripe, métadonnées, tarification et webhooks.
"""
