"""DashVault services: rate limiting, caching, upstream access and fallback orchestration."""
