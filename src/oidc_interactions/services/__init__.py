"""
oidc_interactions.services

Service layer (transaction boundaries).
"""

# Package marker.
