"""auth/ -- Operator authentication for the newsletter service.

Layer rule: auth/ imports stdlib, third-party libraries and core.database only.
It does NOT import from api/, web/ or subscriptions/.
api/ and web/ import from auth/, not the other way around.
"""
