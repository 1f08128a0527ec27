"""Authentication and ownership.

Learn: three small pieces live here:
1. jwt.py / password.py  → signing tokens and hashing passwords
2. dependencies.py       → header → verified identity, as FastAPI Depends()
3. ownership.py          → "does this email own that resource?"

Persistence and the token lifecycle live in tokenvault.services.
"""
