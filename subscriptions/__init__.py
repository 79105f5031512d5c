"""subscriptions/ -- Subscriber registration, confirmation and newsletter delivery.

Layer rule: subscriptions/ imports only stdlib + third-party libraries and
core/ (email client, engine factory). It does NOT import from api/ or web/.
api/ and web/ import from subscriptions/, not the other way around.
"""
