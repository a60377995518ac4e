"""
Edge gateway for the paid course catalogue.

The gateway fronts paid course assets, enforcing:
- Session tokens: HMAC-signed, resource-scoped cookies
- Credential checks: via the remote authority
- Rate limiting and caching: fixed-window counters and a TTL response cache
  kept in a shared expiring store

Structure:
- app.main: FastAPI app, routes, and middleware wiring.
- app.auth: Signer and session token codec.
- app.adapters: HTTP clients for the remote authority and default origin.
- app.caching: Shared expiring cache backends.
- app.ratelimit: Fixed-window limiter.
- app.domain: Access gateway, login and ratings handlers, HTML pages.
"""
