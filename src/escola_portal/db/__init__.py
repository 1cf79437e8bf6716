"""
escola_portal.db

Persistence package (SQLAlchemy async).

Responsibilities:
- Provide ORM models, engine/session setup, and repositories.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Resource routers import models only; branch/student scoped rows reach them through
# `escola_portal.auth.scoping.ScopedStore`.
