"""Core fetch machinery: transport, search, throttling, retries and caching."""
