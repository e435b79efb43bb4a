"""userhub: admin user-management backend.

JWT authentication with rotating refresh tokens, role-gated CRUD on
users, and profile-image uploads behind a small REST API.
"""

__version__ = "0.1.0"
