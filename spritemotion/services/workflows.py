"""Generation workflows that turn service results into groups.

Every workflow that produces several groups runs its calls one after another
and registers each group as soon as its image arrives, so groups appear in
creation order and only one generated image is held at a time.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Sequence

from PIL import Image

from ..core import CREATIVE_3X3_CONFIG, DEFAULT_CONFIG, SpriteGridConfig, TransparencyMode
from ..core import compositor
from ..core.errors import ValidationError
from ..core.groups import Group, GroupRegistry
from . import generation
from .generation import GenerationRequest

logger = logging.getLogger(__name__)

ProgressHandler = Callable[[int], None]

MEME_GRID = SpriteGridConfig(rows=3, cols=3, total_frames=9, transparency=TransparencyMode.NONE)


class ImageGenerator(Protocol):
    def generate(self, request: GenerationRequest) -> Image.Image: ...


def split_actions(text: str) -> list[str]:
    """One action per non-blank line."""

    return [line.strip() for line in text.splitlines() if line.strip()]


def _report(on_progress: Optional[ProgressHandler], done: int, total: int) -> None:
    if on_progress:
        on_progress(int(round(done / total * 100)))


def _request(images: list[Image.Image], prompt: str, size: str, aspect: str = "1:1") -> GenerationRequest:
    try:
        return GenerationRequest(reference_images=images, prompt=prompt, size=size, aspect_ratio=aspect)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def generate_action_groups(
    client: ImageGenerator,
    registry: GroupRegistry,
    character: Image.Image,
    actions: str,
    extra: str = "",
    style: str = "pixel_art",
    size: str = "2K",
    on_progress: Optional[ProgressHandler] = None,
) -> list[Group]:
    """Create one 3x3 group per action line.

    Each result is sent along with the next request as a style reference, so
    the whole set reads as one asset pack.
    """

    prompts = split_actions(actions)
    if not prompts:
        raise ValidationError("Enter at least one action")

    groups: list[Group] = []
    previous: Optional[Image.Image] = None
    for position, action in enumerate(prompts):
        _report(on_progress, position, len(prompts))
        images = [character] if previous is None else [character, previous]
        prompt = generation.action_prompt(style, action, extra, style_reference=previous is not None)
        result = client.generate(_request(images, prompt, size))
        groups.append(registry.create(result, config=CREATIVE_3X3_CONFIG))
        previous = result
        logger.info("Generated action %s/%s: %s", position + 1, len(prompts), action)
    _report(on_progress, len(prompts), len(prompts))
    return groups


def generate_template_groups(
    client: ImageGenerator,
    registry: GroupRegistry,
    character: Image.Image,
    templates: Sequence[Image.Image],
    extra: str = "",
    style: str = "pixel_art",
    size: str = "2K",
    on_progress: Optional[ProgressHandler] = None,
) -> list[Group]:
    """Re-skin each template sheet with the character, one group per template."""

    if not templates:
        raise ValidationError("Template required")

    groups: list[Group] = []
    for position, template in enumerate(templates):
        _report(on_progress, position, len(templates))
        aspect = generation.closest_aspect_ratio(template.width, template.height)
        prompt = generation.template_prompt(style, aspect, extra)
        result = client.generate(_request([template, character], prompt, size, aspect))
        groups.append(registry.create(result, config=DEFAULT_CONFIG, reference=template))
    _report(on_progress, len(templates), len(templates))
    return groups


def generate_interpolated_group(
    client: ImageGenerator,
    registry: GroupRegistry,
    start: Image.Image,
    rows: int,
    cols: int,
    end: Optional[Image.Image] = None,
    template: Optional[Image.Image] = None,
    style: str = "pixel_art",
    size: str = "2K",
) -> Group:
    """Animate from a start frame (and optionally to an end frame) on a chosen grid."""

    images = [image for image in (start, end, template) if image is not None]
    prompt = generation.interpolation_prompt(style, rows, cols, end is not None, template is not None)
    result = client.generate(_request(images, prompt, size))
    config = SpriteGridConfig(rows=rows, cols=cols, total_frames=rows * cols)
    return registry.create(result, config=config, reference=start)


def slice_grid(image: Image.Image, config: SpriteGridConfig = MEME_GRID) -> list[Image.Image]:
    """Cut a grid image into its cells, in frame order."""

    return [compositor.composite(image, config, {}, index) for index in range(config.total_frames)]


def generate_meme_pack(
    client: ImageGenerator,
    registry: GroupRegistry,
    character: Image.Image,
    style: str = "pixel_art",
    size: str = "2K",
    on_progress: Optional[ProgressHandler] = None,
) -> list[Group]:
    """Generate a 3x3 sticker concept sheet, then animate every sticker."""

    concept = client.generate(_request([character], generation.meme_concept_prompt(style), "2K"))
    stickers = slice_grid(concept)
    if on_progress:
        on_progress(20)

    groups: list[Group] = []
    prompt = generation.action_prompt(
        style, "Animate this sticker", "Match the style and caption of the reference image.", pose_reference=True
    )
    for position, sticker in enumerate(stickers, start=1):
        result = client.generate(_request([character, sticker], prompt, size))
        groups.append(registry.create(result, config=CREATIVE_3X3_CONFIG, reference=sticker))
        if on_progress:
            on_progress(20 + int(round(position / len(stickers) * 80)))
    return groups
