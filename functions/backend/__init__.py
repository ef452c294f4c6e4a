"""
Backend package for the TaPiff API.

This package provides a FastAPI application serving journal/planner
projects and their pages, scoped to the signed-in user, with database
abstractions for Postgres and an in-memory store for local runs and tests.
"""
