"""Audio Files API - Core application modules.

Provides:
- Settings, errors and request/response schemas
- Bearer token verification against a remote key set
- S3 presigning gateway
- SQLite audit log models and DB primitives
"""

__version__ = "0.1.0"
