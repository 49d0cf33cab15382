"""
Rainbow SDK - Session Resilience Layer

This package keeps a client session with the Rainbow cloud communications platform
alive: it signs in, tracks the lifetime of the bearer token, renews it before it
expires, recovers from connectivity loss, and walks paginated collections.

Key Components:
- auth: Credential encoding for login headers and bearer token claim decoding
- session: Token lifecycle, reconnection backoff, health probing, pagination and the
  RainbowSession facade composing them
- transport: The abstract request interface and its aiohttp implementation
- config: Settings loaded from the environment with Pydantic
- metrics: Vendor-agnostic metrics client

Architecture Overview:
1. Sign-in:
   - Credentials and application identity are encoded into login headers
   - The returned bearer token is handed to the token lifecycle manager

2. Token Management:
   - Renewal is scheduled one hour before expiry, or performed immediately when the
     token is already close to expiring
   - A failed renewal is surfaced as a `token-expired` notification

3. Connectivity Recovery:
   - Transport failures start a reconnection cycle driven by a jittered Fibonacci
     backoff
   - Each attempt probes the platform health before declaring success
"""
