# Services package init
"""
TraceRelay Backend — Services Layer
=====================================

Service Inventory:
    - UploadIntake:        validates the inbound request (intake.py)
    - build_outbound_form: InboundRequest → multipart form (translator.py)
    - UpstreamClient:      one bounded call to the recognition API (upstream.py)
    - map_upstream_error:  failure → (status, message, details) (error_mapper.py)

Each piece is usable and testable without HTTP; the recognize route only
wires them together.
"""
