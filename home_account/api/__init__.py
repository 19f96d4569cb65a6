"""
FastAPI application layer: app factory, auth dependencies, schemas and routers.
"""
