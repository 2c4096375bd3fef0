"""Package manager adapters."""
