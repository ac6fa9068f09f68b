"""REST API requests: describe, rows, query, composite and collections."""
