"""auth/ -- Credential and session core.

Layer rule: auth/ imports only stdlib + third-party libraries.
It does NOT import from api/ or core/ -- configuration values (signing
secret, TTLs, bcrypt cost) are passed in by the application factory.
api/ imports from auth/, not the other way around.
"""
