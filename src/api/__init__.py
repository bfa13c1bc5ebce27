"""FastAPI application module for ShopRec.

This module contains the FastAPI application, route handlers, and API
endpoints exposing the personalization engine to the storefront UI: settings,
profile snapshots, scored recommendations, assembled sections and the
impression/click/feedback loop.
"""
