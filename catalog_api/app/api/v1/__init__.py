"""
Version 1 of the catalog API, mounted under ``/api/v1``.
"""
