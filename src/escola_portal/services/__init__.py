"""
escola_portal.services

Service layer.

Responsibilities:
- Login/logout/refresh flows that combine credential checks with session writes.
- Background maintenance of the session table.
"""

# Package marker.
