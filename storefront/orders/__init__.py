"""
Module 'orders': cycle de vie des commandes et matérialisation idempotente depuis un paiement.
"""
