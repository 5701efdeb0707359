"""
Backend package for the personal workbench API.

This package provides a FastAPI application for typing-speed tests, a todo
list and a calculator history, with users signed in through an external
OpenID Connect provider and records kept behind a small store abstraction.
"""
