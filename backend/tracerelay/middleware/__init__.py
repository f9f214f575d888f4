"""
TraceRelay Backend — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (order matters!):
    Request → [Request ID] → [Logging] → [CORS] → [Unhandled] → Route Handler

    Response ← [Request ID] ← [Logging] ← [CORS] ← [Unhandled] ← Route Handler

    - Request ID is generated first so every log line of the request,
      including the access log entry, carries it
    - Logging captures status, duration and the recognition fields the
      route leaves on request.state
    - Unhandled turns stray exceptions into the 500 envelope while the
      request ID is still set
"""
