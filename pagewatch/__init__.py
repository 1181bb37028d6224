"""
PageWatch Django application.

Watches competitor pages on behalf of tenants, decides whether they may be
checked again, fetches them through a cheap/accurate cascade and alerts when
a meaningful change is detected.
"""
