"""auth/ -- Accounts, password hashing, session tokens and request guards.

Layer rule: auth/ imports only stdlib, third-party libraries and core/.
It does NOT import from api/, catalog/, or storage/.
api/ and catalog/ import from auth/, not the other way around.
"""
