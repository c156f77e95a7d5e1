"""
HTTP routers, one module per resource.

Public storefront routes and admin routes live side by side; admin-only
operations depend on ``auth_utils.require_admin``.
"""
