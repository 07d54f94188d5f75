"""
Core infrastructure for the Content Processor backend.

- auth: Local bearer tokens, ID token validation and the current-user dependency
- database: MongoDB async client with Motor driver and connection pooling
- exceptions: Error taxonomy shared by every service
- oidc: Authorization-code client for the external identity provider
"""
