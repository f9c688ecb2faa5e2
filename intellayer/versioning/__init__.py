"""Version lifecycle: resolution, publishing, promotion and rollback.

SANDBOX and PRODUCTION each hold at most one ACTIVE version per process.
Versions are append-only; promotion and rollback create new versions and
deprecate the ones they supersede.
"""
