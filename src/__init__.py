"""ShopRec: behavioral personalization engine for a storefront.

This package observes a shopper's browsing actions, builds a decaying interest
profile from them, scores the catalog against that profile, and assembles
ranked content sections for display.

Modules:
    api: FastAPI application and REST API endpoints
    personalization: Event store, profile builder, scoring and section assembly
"""

__version__ = "0.2.0"
