"""
oidc_interactions.clients

Outbound HTTP clients to collaborating services.
"""

# Package marker.
