"""Service layer: business rules, queries and commits."""
