"""
Service modules for session credentials.

This package contains:
- Token provider injection point
- Single-flight token refresh coordination
- Session token persistence
- Connectivity checks
"""
