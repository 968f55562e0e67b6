"""
Pydantic schema definitions for API payloads.

Each domain (users, products, bookings) defines its own Pydantic
models for request and response bodies.  Attribute names are
snake_case in Python and camelCase on the wire (see ``common.ApiModel``).
"""
