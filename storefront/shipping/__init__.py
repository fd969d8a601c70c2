"""
Module 'shipping' (feature-first): colisage, tarifs Shippo, étiquettes et suivi.
"""
