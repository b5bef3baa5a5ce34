"""google-genai helpers for scenario interior renders."""

from __future__ import annotations

import base64
import io

import structlog
from google import genai
from google.genai import types
from PIL import Image

from spaceplan.config import settings
from spaceplan.utils.tracing import wrap_gemini

logger = structlog.get_logger()

IMAGE_CONFIG = types.GenerateContentConfig(
    response_modalities=["TEXT", "IMAGE"],
)


def get_client() -> genai.Client:
    """Create a Gemini client using the configured API key."""
    return wrap_gemini(genai.Client(api_key=settings.google_ai_api_key))


def extract_image(response: types.GenerateContentResponse) -> Image.Image | None:
    """First image part of a Gemini response, or None when the model answered text-only."""
    if not response.candidates:
        return None
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return None
    for part in content.parts:
        try:
            genai_img = part.as_image()
        except (AttributeError, ValueError):
            continue
        if genai_img is not None and genai_img.image_bytes is not None:
            try:
                return Image.open(io.BytesIO(genai_img.image_bytes))
            except Exception:
                logger.error("gemini_image_decode_failed", image_bytes_len=len(genai_img.image_bytes))
                raise
    return None


def extract_text(response: types.GenerateContentResponse) -> str:
    if not response.candidates:
        return ""
    content = response.candidates[0].content
    if content is None or content.parts is None:
        return ""
    return "\n".join(part.text for part in content.parts if part.text is not None)


def image_to_data_url(image: Image.Image) -> str:
    """Encode an image as a PNG data URL usable directly as an <img> src."""
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
