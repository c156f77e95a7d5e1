"""
API package for the storefront backend.

Modules:
- config: environment-driven settings
- db: PostgreSQL connection pooling, query helpers and transactions
- auth_utils: password hashing, JWT issue/verify and auth dependencies
- schemas: Pydantic request models and shared enumerations
- pricing: order subtotal, coupon discount and total computation
- routers: one APIRouter per resource
"""
