"""
Backend package for the kitchen marketing site.

This package provides a FastAPI application for the contact form, the
newsletter sign-up and the admin contact listing, on top of a storage
abstraction with an in-memory and a SQL implementation.
"""
