"""Remote API access: the HTTP transport and the design API client."""
