"""
Backend boutique: calcul des frais de port, paiement Stripe et réconciliation des commandes.
"""
