"""Authentication and authorization.

Two layers, checked in this order on every protected route:
1. Authentication: Bearer access token -> verified user (401 on failure)
2. Authorization: user role vs. the permission policy (403 on failure)

Refresh tokens are JWTs too, but they are also stored on the user row
and rotated on every use, so a replayed or superseded one is rejected.
"""
