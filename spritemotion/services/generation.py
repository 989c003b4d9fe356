"""Client for the generative-image service (Gemini-style REST API)."""

from __future__ import annotations

import base64
import json
import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

import httpx
from PIL import Image

from ..core.errors import GenerationError, TransientServiceError, UnsupportedFormatError
from ..utils import image_io

logger = logging.getLogger(__name__)

T = TypeVar("T")

GENAI_BASE_URL = os.environ.get("SM_GENAI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GENAI_API_KEY = os.environ.get("SM_GENAI_API_KEY", "")
IMAGE_MODEL = os.environ.get("SM_GENAI_IMAGE_MODEL", "gemini-3-pro-image-preview")
ANALYSIS_MODEL = os.environ.get("SM_GENAI_ANALYSIS_MODEL", "gemini-2.5-flash")
DEFAULT_TIMEOUT = httpx.Timeout(120.0, connect=10.0)

TRANSIENT_STATUS = frozenset({500, 503})
MAX_RETRIES = 3
INITIAL_BACKOFF_SECONDS = 1.0

IMAGE_SIZES = ("1K", "2K", "4K")

SUPPORTED_ASPECT_RATIOS = {
    "1:1": 1.0,
    "3:4": 0.75,
    "4:3": 4 / 3,
    "9:16": 0.5625,
    "16:9": 16 / 9,
}

STYLE_PRESETS = {
    "pixel_art": "high-quality pixel art style, crisp edges, retro 8-bit/16-bit game aesthetics, distinct pixels, no anti-aliasing",
    "vector_flat": "flat vector art style, clean crisp lines, solid colors, modern mobile game aesthetics, minimal gradients",
    "anime_cel": "anime style, cel-shaded, vibrant colors, sharp outlines, expressive features",
    "watercolor": "watercolor painting style, soft edges, textured paper feel, fluid strokes",
    "sketch": "hand-drawn sketch style, pencil or ink lines, rough texture, loose strokes",
    "custom": "consistent artistic style",
}

WHITE_BACKGROUND_RULES = (
    "BACKGROUND: Use a pure solid white background (#FFFFFF). "
    "Do not use checkerboard patterns, grid patterns or alpha transparency."
)


@dataclass
class GenerationRequest:
    """One generation call: ordered reference images plus an instruction."""

    reference_images: list[Image.Image]
    prompt: str
    size: str = "2K"
    aspect_ratio: str = "1:1"

    def __post_init__(self) -> None:
        if self.size not in IMAGE_SIZES:
            raise ValueError(f"size must be one of {', '.join(IMAGE_SIZES)}")
        if self.aspect_ratio not in SUPPORTED_ASPECT_RATIOS:
            raise ValueError(f"aspect_ratio must be one of {', '.join(SUPPORTED_ASPECT_RATIOS)}")


def closest_aspect_ratio(width: int, height: int) -> str:
    """Pick the supported aspect ratio nearest to ``width / height``."""

    if width <= 0 or height <= 0:
        return "1:1"
    ratio = width / height
    label = min(SUPPORTED_ASPECT_RATIOS, key=lambda key: abs(ratio - SUPPORTED_ASPECT_RATIOS[key]))
    logger.debug("Template ratio %.2f (%sx%s) -> %s", ratio, width, height, label)
    return label


def style_phrase(preset_id: str) -> str:
    return STYLE_PRESETS.get(preset_id, STYLE_PRESETS["pixel_art"])


def template_prompt(preset_id: str, aspect_ratio: str, extra: str = "") -> str:
    """Instruction for re-skinning a template sheet with a character."""

    style = style_phrase(preset_id)
    lines = [
        f"Create a high-quality sprite sheet in {style}.",
        "The layout, grid structure and poses MUST exactly match the first image (the template sprite sheet).",
        "Apply the appearance of the character in the second image to every pose.",
        f"Do not stretch sprites; if the output aspect ratio ({aspect_ratio}) differs, pad with empty space.",
        WHITE_BACKGROUND_RULES,
    ]
    if extra:
        lines.append(f"Additional instructions: {extra}")
    return "\n".join(lines)


def action_prompt(
    preset_id: str,
    action: str,
    extra: str = "",
    pose_reference: bool = False,
    style_reference: bool = False,
) -> str:
    """Instruction for animating a character performing an action on a 3x3 grid.

    Reference images follow the character in this order: the pose reference
    (a single still to animate), then a previous sheet to match in style.
    """

    style = style_phrase(preset_id)
    lines = [
        f"Create a high-quality sprite sheet for game animation in {style}.",
        "Keep the exact identity, colors and design of the attached character.",
        f"ACTION: {action}",
    ]
    if pose_reference:
        lines += [
            "POSE REFERENCE: animate the pose, expression and caption of the reference image.",
            "Make the movement large and bouncy, using squash and stretch.",
        ]
    lines += [
        "Generate exactly a 3x3 grid (9 frames) of equal-size cells with sprites centered in each cell.",
        "The 9th frame must loop back seamlessly to the 1st.",
        WHITE_BACKGROUND_RULES,
    ]
    if style_reference:
        lines.append(
            "CONSISTENCY: match the palette, stroke width, pixel density and cell size "
            "of the reference sprite sheet from the previous action."
        )
    if extra:
        lines.append(f"Additional details: {extra}")
    return "\n".join(lines)


def meme_concept_prompt(preset_id: str) -> str:
    """Instruction for a 3x3 grid of exaggerated sticker poses."""

    return "\n".join(
        [
            "Create a sticker pack for the provided character as a single square image.",
            "Lay it out as a strict 3x3 grid with clear white space between the 9 cells.",
            "Each cell shows a unique, highly exaggerated expression or pose with a short handwritten caption.",
            f"Style: {style_phrase(preset_id)}.",
            WHITE_BACKGROUND_RULES,
        ]
    )


def interpolation_prompt(preset_id: str, rows: int, cols: int, has_end: bool, has_template: bool) -> str:
    """Instruction for an in-between animation starting at the given frame."""

    lines = [
        "Create a high-quality sprite sheet using the provided START FRAME image.",
        f"Grid: strictly {rows} rows and {cols} columns ({rows * cols} frames), read row by row, left to right.",
        "Frame 1 (top-left) must look exactly like the START FRAME.",
    ]
    if has_end:
        lines += [
            "The final frame (bottom-right) must look exactly like the END FRAME image.",
            "Frames in between morph smoothly from start to end, preserving volume and style.",
        ]
    else:
        lines.append("Animate a natural action that starts from this frame and loops back to it.")
    if has_template:
        lines.append("Follow the layout density and character proportions of the template reference.")
    lines += [f"Style: {style_phrase(preset_id)}.", WHITE_BACKGROUND_RULES]
    return "\n".join(lines)


def with_backoff(
    operation: Callable[[], T],
    retries: int = MAX_RETRIES,
    initial_delay: float = INITIAL_BACKOFF_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Run ``operation``, retrying transient failures with doubling delays."""

    delay = initial_delay
    for attempt in range(retries):
        try:
            return operation()
        except TransientServiceError as exc:
            logger.warning(
                "Service error (%s). Retrying in %.1fs (%s retries left)",
                exc.status_code or exc,
                delay,
                retries - attempt,
            )
            sleep(delay)
            delay *= 2
    return operation()


class GenerationClient:
    """Thin wrapper over the ``generateContent`` endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = GENAI_BASE_URL,
        http_client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.api_key = api_key if api_key is not None else GENAI_API_KEY
        self._client = http_client or httpx.Client(base_url=base_url, timeout=DEFAULT_TIMEOUT)
        self._sleep = sleep

    def close(self) -> None:
        self._client.close()

    def generate(self, request: GenerationRequest) -> Image.Image:
        """Return the single image produced for ``request``."""

        parts: list[dict[str, Any]] = [{"text": request.prompt}]
        parts.extend(_inline_image(image) for image in request.reference_images)
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "imageConfig": {"imageSize": request.size, "aspectRatio": request.aspect_ratio},
            },
        }

        def call() -> Image.Image:
            body = self._post(IMAGE_MODEL, payload)
            for part in _response_parts(body):
                inline = part.get("inlineData") or part.get("inline_data")
                if inline and inline.get("data"):
                    return _decode_inline(inline["data"])
            raise GenerationError("No image generated in response")

        logger.info("Requesting %s image (%s, %s references)", request.size, request.aspect_ratio, len(parts) - 1)
        return with_backoff(call, sleep=self._sleep)

    def analyze_grid(self, image: Image.Image) -> dict[str, int]:
        """Ask the service to count rows, columns and frames in a sheet."""

        payload = {
            "contents": [
                {
                    "parts": [
                        _inline_image(image),
                        {
                            "text": "Analyze this sprite sheet. Count the rows and columns of the frame grid "
                            "and estimate the total number of frames (the last row may not be full). "
                            "Return JSON."
                        },
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": {
                    "type": "OBJECT",
                    "properties": {
                        "rows": {"type": "INTEGER"},
                        "cols": {"type": "INTEGER"},
                        "totalFrames": {"type": "INTEGER"},
                    },
                    "required": ["rows", "cols", "totalFrames"],
                },
            },
        }

        def call() -> dict[str, int]:
            body = self._post(ANALYSIS_MODEL, payload)
            text = "".join(part.get("text", "") for part in _response_parts(body))
            if not text:
                raise GenerationError("No analysis text in response")
            try:
                data = json.loads(text)
                return {"rows": int(data["rows"]), "cols": int(data["cols"]), "total_frames": int(data["totalFrames"])}
            except (ValueError, KeyError, TypeError) as exc:
                raise GenerationError(f"Malformed analysis result: {text!r}") from exc

        return with_backoff(call, sleep=self._sleep)

    def _post(self, model: str, payload: dict[str, Any]) -> dict[str, Any]:
        headers = {"x-goog-api-key": self.api_key} if self.api_key else {}
        try:
            response = self._client.post(f"/models/{model}:generateContent", json=payload, headers=headers)
        except httpx.RequestError as exc:
            raise GenerationError(f"Request to generation service failed: {exc}") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            if response.status_code in TRANSIENT_STATUS or "overloaded" in message.lower():
                raise TransientServiceError(message, status_code=response.status_code)
            raise GenerationError(f"Generation service error {response.status_code}: {message}")
        try:
            return response.json()
        except ValueError as exc:
            raise GenerationError("Generation service returned invalid JSON") from exc


def _inline_image(image: Image.Image) -> dict[str, Any]:
    data = base64.b64encode(image_io.encode_png(image)).decode("ascii")
    return {"inlineData": {"mimeType": "image/png", "data": data}}


def _decode_inline(data: str) -> Image.Image:
    try:
        raw = base64.b64decode(data, validate=True)
    except ValueError as exc:
        raise UnsupportedFormatError("<generated>", reason="Invalid base64 payload") from exc
    return image_io.decode_image(raw, source="<generated>")


def _response_parts(body: dict[str, Any]) -> list[dict[str, Any]]:
    candidates = body.get("candidates") or []
    if not candidates:
        return []
    content = candidates[0].get("content") or {}
    return list(content.get("parts") or [])


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return str(error.get("message") or error.get("status") or response.reason_phrase)
    return response.reason_phrase
