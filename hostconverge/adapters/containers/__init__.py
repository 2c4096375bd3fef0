"""Container runtime adapters."""
