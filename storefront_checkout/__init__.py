"""
Device-scoped cart and checkout client for the storefront backend.
"""
