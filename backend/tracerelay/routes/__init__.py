# Routes package init
"""
TraceRelay Backend — API Routes Package
=========================================

Route Inventory:
    - recognize.py:  POST /api/recognize   (relay an image to the recognition service)
    - health.py:     GET  /health          (liveness probe)

The front-end page (GET /) is served from the static directory mounted in
main.py, not by a route module.

Routes stay thin: they pull the request apart, call the services and hand
failures to the global exception handlers.
"""
