"""
TraceRelay Backend — Request Translator
=========================================

What:  Builds the outbound multipart form from a validated InboundRequest.
How:   Local uploads become a `file` part (original filename and declared
       content type); otherwise the image URL becomes a `url` field. Each
       recognition option that was supplied is appended verbatim.

Options that were not supplied are left out entirely. No defaults are
filled in: the upstream treats a missing field and an empty one differently.
"""

from tracerelay.schemas.recognition import InboundRequest, OutboundForm


def build_outbound_form(inbound: InboundRequest) -> OutboundForm:
    """Translate a validated request into the upstream form. Never fails."""
    fields = []
    file = None

    if inbound.image is not None:
        file = inbound.image
    else:
        fields.append(("url", inbound.image_url))

    fields.extend(inbound.options.supplied())
    return OutboundForm(file=file, fields=fields)
