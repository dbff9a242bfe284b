#!/usr/bin/env python3
"""
WSGI entry point for hosts that only speak WSGI.

Wraps the FastAPI ASGI application with a2wsgi. Configure the database
through the DATABASE_URL environment variable or a .env file.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///billing_lifecycle.db")

from a2wsgi import ASGIMiddleware  # noqa: E402

from billing_lifecycle.main import app as fastapi_app  # noqa: E402

application = ASGIMiddleware(fastapi_app)
