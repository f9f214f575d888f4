"""
TraceRelay Backend — Application Package Initializer
======================================================

What: A relay that forwards uploaded images (or image URLs) to an
      image-recognition service and passes its JSON answer back.

Architecture Note:

    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │  Services                           │
    │  intake → translator → upstream     │  ← validation, form building, outbound call
    │  error_mapper                       │  ← failure → user-facing message
    ├─────────────────────────────────────┤
    │       Schemas (request-scoped data) │  ← Pydantic models, nothing persisted
    └─────────────────────────────────────┘
"""

__version__ = "1.0.0"
