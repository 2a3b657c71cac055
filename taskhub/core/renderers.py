from __future__ import annotations

from typing import Any

from rest_framework.renderers import JSONRenderer


class EnvelopeJSONRenderer(JSONRenderer):
    """Wrap successful payloads as ``{"success": true, "data": ...}``.

    Error bodies built by the exception handler already carry ``success`` and
    pass through untouched, as do empty 204 responses.
    """

    def render(
        self,
        data: Any,
        accepted_media_type: str | None = None,
        renderer_context: dict[str, Any] | None = None,
    ) -> bytes:
        response = (renderer_context or {}).get("response")
        if response is not None and response.status_code == 204:  # noqa: PLR2004
            return b""
        if not (isinstance(data, dict) and "success" in data):
            envelope: dict[str, Any] = {"success": True, "data": data}
            message = getattr(response, "message", None)
            if message:
                envelope["message"] = message
            data = envelope
        return super().render(data, accepted_media_type, renderer_context)
