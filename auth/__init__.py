"""auth/ -- Credentials, tokens and the account store for UserGate.

Layer rule: auth/ imports from core/ and cache/ plus third-party libraries.
It does NOT import from api/. api/ imports from auth/, not the other way
around; auth/dependencies.py is the only module that touches FastAPI.
"""
