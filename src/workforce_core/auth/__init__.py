"""
workforce_core.auth

Authentication/authorization package.

Responsibilities:
- JWT helpers carrying the identity store claims.
- FastAPI auth dependencies (Caller + role checks).
"""

# Package marker.
