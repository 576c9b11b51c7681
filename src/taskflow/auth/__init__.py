"""Identity: who a request acts as.

Two kinds of principal:
1. Users → email/password → JWT access/refresh tokens
2. Guests → no account, an opaque HttpOnly cookie minted on first visit

Both resolve to a single Identity value that every data access is
scoped by.
"""
