"""
Utility functions and helpers.

- auth: bearer/cookie token decoding and FastAPI dependencies
- infrastructure: rate limiting and the Redis client behind it
"""
