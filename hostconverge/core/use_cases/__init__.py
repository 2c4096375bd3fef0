"""Use cases — one function per CLI verb, returning result objects."""
