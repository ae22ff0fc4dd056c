"""
Console tabs live under this package.

Each module owns its routes (admin.py), models and service functions, and reuses
platform primitives (auth, RBAC, audit, DB session).
"""
