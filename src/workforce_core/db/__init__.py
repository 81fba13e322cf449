"""
workforce_core.db

Persistence package (SQLAlchemy async) backing the reference identity and document stores.

Responsibilities:
- Provide ORM models and engine/session setup.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Services never import from here directly; they only see the store protocols.
