"""
Infrastructure layer - external service integrations.

Each subdirectory wraps an external dependency:
- storage: BunnyCDN Edge Storage HTTP client (plus in-memory mock)

These wrappers translate between the backend's wire format and the
Remote Object Client protocol the core adapter expects.
"""
