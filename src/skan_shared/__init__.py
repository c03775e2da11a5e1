"""
Shared library for the skan services: configuration, persistence, security
primitives and the auth and order services.
"""
