"""
Application package initializer.

This package contains the main entrypoint for the API and all of its
submodules.  Each domain (users, products, bookings) has a schema
module, a service class and a router defined in ``api/v1/endpoints``.
Cross‑cutting concerns (configuration, security, persistence, query
building, error taxonomy) live in ``core``.
"""
