"""
escola_portal.auth

Authentication/authorization package.

Responsibilities:
- Credential verification per role (admin, unit manager, guardian).
- Server-side session container holding at most one identity per role.
- Guards, role precedence and tenant scoping for request handlers.
"""

# Package marker.


# --- Module Notes -----------------------------------------------------------
# Request flow: credentials -> sessions -> guards -> routing -> scoping.
