"""
Core storage logic.

This module is framework-agnostic - it doesn't import FastAPI, httpx,
or any infrastructure concerns. The adapter only knows the Remote Object
Client protocol, so it can be tested against an in-memory client and
pointed at a different transport without changes.
"""
