"""
TraceRelay Backend — Request Translator Unit Tests
====================================================

What:  Tests for build_outbound_form and the InboundRequest invariant.
"""

import pytest
from pydantic import ValidationError as PydanticValidationError

from tracerelay.schemas.recognition import (
    ImagePayload,
    InboundRequest,
    OutboundForm,
    RecognitionOptions,
)
from tracerelay.services.translator import build_outbound_form


@pytest.fixture
def image():
    return ImagePayload(content=b"\x89PNG", filename="miku.png", content_type="image/png")


class TestBuildOutboundForm:

    def test_file_upload_becomes_file_part(self, image):
        form = build_outbound_form(InboundRequest(image=image))
        assert form.file == image
        assert form.fields == []

    def test_url_becomes_url_field(self):
        form = build_outbound_form(InboundRequest(image_url="https://example.com/a.jpg"))
        assert form.file is None
        assert form.fields == [("url", "https://example.com/a.jpg")]

    def test_only_explicit_options_are_included(self, image):
        inbound = InboundRequest(
            image=image,
            options=RecognitionOptions(is_multi="1", ai_detect="0"),
        )
        form = build_outbound_form(inbound)
        assert form.data == {"is_multi": "1", "ai_detect": "0"}
        assert "model" not in form.data
        assert "use_correction" not in form.data

    def test_empty_string_option_is_forwarded(self):
        inbound = InboundRequest(
            image_url="https://example.com/a.jpg",
            options=RecognitionOptions(model=""),
        )
        form = build_outbound_form(inbound)
        assert form.data == {"url": "https://example.com/a.jpg", "model": ""}

    def test_option_order_is_stable(self):
        inbound = InboundRequest(
            image_url="https://example.com/a.jpg",
            options=RecognitionOptions(
                use_correction="1", ai_detect="1", model="anime", is_multi="1"
            ),
        )
        form = build_outbound_form(inbound)
        assert [name for name, _ in form.fields] == [
            "url", "is_multi", "model", "ai_detect", "use_correction",
        ]


class TestMultipartRendering:

    def test_file_part_keeps_filename_and_type(self, image):
        form = OutboundForm(file=image, fields=[("is_multi", "1")])
        assert form.as_multipart() == [
            ("file", ("miku.png", b"\x89PNG", "image/png")),
            ("is_multi", (None, "1")),
        ]

    def test_fields_render_without_filename(self):
        form = OutboundForm(fields=[("url", "https://example.com/a.jpg")])
        assert form.as_multipart() == [("url", (None, "https://example.com/a.jpg"))]


class TestInboundInvariant:

    def test_both_sources_rejected(self, image):
        with pytest.raises(PydanticValidationError):
            InboundRequest(image=image, image_url="https://example.com/a.jpg")

    def test_no_source_rejected(self):
        with pytest.raises(PydanticValidationError):
            InboundRequest()
