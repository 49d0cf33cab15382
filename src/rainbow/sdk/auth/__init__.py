"""
Authentication primitives.

- credentials.py: Credentials, application identity and the login header values
  derived from them
- token.py: Decoding of the bearer token's `iat` / `exp` claims
"""
