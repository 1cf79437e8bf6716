"""
escola_portal.api

API package for the school portal service.

Responsibilities:
- FastAPI app factory and router modules.
- API-layer dependency wiring, cookie handling and error translation.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# The API layer should remain thin: request validation + auth + delegation to services.
