"""
Proxy Service package for the credential proxy.

The proxy fronts an upstream REST API and holds the only credential used
to call it:
- Credentials: Redis-backed cache of the issuer's access token
- Adapters: HTTP clients for the token issuer and the upstream API
- Domain: the refresh coordinator that gates every credentialed request

Structure:
- app.main: FastAPI app, routes, and lifecycle wiring.
- app.adapters: HTTP clients for external services.
- app.credentials: Credential models and the credential store.
- app.domain: Request gating (credential refresh).
"""
