"""
DocFlow
Blueprint registry: health, auth, admin, flows, documents.
"""
