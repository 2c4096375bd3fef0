"""Process supervisor adapters."""
