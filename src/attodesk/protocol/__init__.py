"""On-disk document types and IO helpers."""
