"""auth/ -- Credentials, tokens, accounts, and ephemeral-account expiry.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/. Configuration (the signing secret, the
database URL) is passed in by api/, never read here.
"""
