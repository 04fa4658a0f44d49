"""
Bunny Storage Adapter - BunnyCDN Edge Storage behind a generic storage contract.

This package contains the complete application:
- core: Framework-agnostic storage contract and adapter
- infrastructure: BunnyCDN HTTP client and in-memory mock
- api: FastAPI routes and dependencies
- config: Application configuration
"""

__version__ = "0.1.0"
