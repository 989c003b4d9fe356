"""FastAPI surface for sprite sheet editing, preview and export."""

from __future__ import annotations

import logging
import os
from functools import partial
from pathlib import Path
from typing import Any, Optional

from fastapi import FastAPI, File, Form, HTTPException, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator
from starlette.concurrency import run_in_threadpool

from ..core import (
    CREATIVE_3X3_CONFIG,
    DEFAULT_CONFIG,
    AssetKind,
    Direction,
    ExportedAsset,
    ProcessingStatus,
    TransparencyMode,
)
from ..core import compositor
from ..core.assembly import AssemblyPipeline, export_all
from ..core.errors import (
    AssemblyInProgressError,
    GenerationError,
    ProcessingError,
    StorageFullError,
    UnsupportedFormatError,
    ValidationError,
)
from ..core.groups import Group, GroupRegistry
from ..core.playback import PlaybackClock
from ..core.processing import ProcessingTracker
from ..core.sheet_export import build_manifest, export_sheet
from ..services import workflows
from ..services.generation import GENAI_API_KEY, GenerationClient
from ..services.template_store import TemplateStore
from ..utils import image_io, validators

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[2]
DATA_DIR = Path(os.environ.get("SM_DATA_DIR", str(BASE_DIR / "data")))
MAX_UPLOAD_BYTES = int(os.environ.get("SM_MAX_UPLOAD_MB", "20")) * 1024 * 1024
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.environ.get("SM_ALLOWED_ORIGINS", "http://localhost:8000").split(",")
    if origin.strip()
]
GENERATION_MODES = ("template", "action", "interpolated", "meme_pack")


class GridUpdate(BaseModel):
    """New grid dimensions; the frame count becomes rows * cols."""

    rows: int = Field(..., ge=1, le=64)
    cols: int = Field(..., ge=1, le=64)


class ConfigUpdate(BaseModel):
    """Partial update of the non-grid settings."""

    total_frames: Optional[int] = Field(None, ge=0)
    fps: Optional[int] = Field(None, ge=1, le=validators.MAX_FPS)
    direction: Optional[Direction] = None
    export_scale: Optional[int] = None
    transparency: Optional[TransparencyMode] = None
    key_color: Optional[tuple[int, int, int]] = None

    @field_validator("key_color", mode="before")
    @classmethod
    def _parse_color(cls, value):
        if value in (None, "", "null"):
            return None
        if isinstance(value, (list, tuple)):
            return tuple(value[:3])
        if isinstance(value, str):
            return validators.parse_hex_color(value)
        raise ValueError("Color must be #RRGGBB")

    @field_validator("export_scale")
    @classmethod
    def _check_scale(cls, value):
        if value is not None and value not in validators.ALLOWED_EXPORT_SCALES:
            raise ValueError("Export scale must be 1, 2 or 4")
        return value


class OffsetNudge(BaseModel):
    dx: int = 0
    dy: int = 0


class GroupSummary(BaseModel):
    id: str
    width: int
    height: int
    rows: int
    cols: int
    total_frames: int
    fps: int
    direction: Direction
    export_scale: int
    transparency: TransparencyMode
    key_color: Optional[str] = None
    frame_width: int
    frame_height: int
    offsets: dict[int, tuple[int, int]]
    excluded: list[int]
    valid_frames: list[int]
    version: int
    created_at: float
    has_reference: bool


class AssetSummary(BaseModel):
    id: str
    kind: AssetKind
    name: str
    width: int
    height: int
    group_id: Optional[str] = None
    created_at: float
    size_bytes: int
    url: str


class ProcessingSummary(BaseModel):
    status: ProcessingStatus
    progress: float
    error: Optional[str] = None


class PreviewFrame(BaseModel):
    frame: Optional[int]
    version: int
    period_ms: float


def _summarize_group(group: Group) -> GroupSummary:
    config = group.config
    frame_w, frame_h = group.frame_size
    return GroupSummary(
        id=group.id,
        width=group.width,
        height=group.height,
        rows=config.rows,
        cols=config.cols,
        total_frames=config.total_frames,
        fps=config.fps,
        direction=config.direction,
        export_scale=config.export_scale,
        transparency=config.transparency,
        key_color="#%02X%02X%02X" % config.key_color if config.key_color else None,
        frame_width=frame_w,
        frame_height=frame_h,
        offsets={index: (o.dx, o.dy) for index, o in group.edits.offsets.items()},
        excluded=sorted(group.edits.excluded),
        valid_frames=group.valid_frames(),
        version=group.version,
        created_at=group.created_at,
        has_reference=group.reference is not None,
    )


def _summarize_asset(asset: ExportedAsset) -> AssetSummary:
    return AssetSummary(
        id=asset.id,
        kind=asset.kind,
        name=asset.name,
        width=asset.width,
        height=asset.height,
        group_id=asset.group_id,
        created_at=asset.created_at,
        size_bytes=len(asset.data),
        url=f"/api/assets/{asset.id}",
    )


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(
    registry: Optional[GroupRegistry] = None,
    pipeline: Optional[AssemblyPipeline] = None,
    template_store: Optional[TemplateStore] = None,
    generation_client: Optional[GenerationClient] = None,
) -> FastAPI:
    app = FastAPI(title="SpriteMotion", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    registry = registry or GroupRegistry()
    pipeline = pipeline or AssemblyPipeline()
    template_store = template_store or TemplateStore(DATA_DIR)
    if generation_client is None and GENAI_API_KEY:
        generation_client = GenerationClient()
    tracker = ProcessingTracker()
    app.state.registry = registry
    app.state.pipeline = pipeline
    app.state.template_store = template_store
    app.state.generation_client = generation_client
    app.state.tracker = tracker

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(UnsupportedFormatError)
    async def _format_error(request: Request, exc: UnsupportedFormatError) -> JSONResponse:
        return _error_response(400, exc)

    @app.exception_handler(AssemblyInProgressError)
    async def _busy_error(request: Request, exc: AssemblyInProgressError) -> JSONResponse:
        return _error_response(409, exc)

    @app.exception_handler(StorageFullError)
    async def _storage_error(request: Request, exc: StorageFullError) -> JSONResponse:
        return _error_response(507, exc)

    @app.exception_handler(GenerationError)
    async def _generation_error(request: Request, exc: GenerationError) -> JSONResponse:
        return _error_response(502, exc)

    @app.exception_handler(ProcessingError)
    async def _processing_error(request: Request, exc: ProcessingError) -> JSONResponse:
        logger.error("Processing failed: %s", exc)
        return _error_response(500, exc)

    def get_group(group_id: str) -> Group:
        try:
            return registry.get(group_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Group not found") from None

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/processing", response_model=ProcessingSummary)
    async def processing_state() -> ProcessingSummary:
        state = tracker.state
        return ProcessingSummary(status=state.status, progress=state.progress, error=state.error)

    @app.get("/api/groups", response_model=list[GroupSummary])
    async def list_groups() -> list[GroupSummary]:
        return [_summarize_group(group) for group in registry.groups()]

    @app.post("/api/groups", response_model=GroupSummary, status_code=201)
    async def create_group(
        image: UploadFile = File(...),
        reference: UploadFile | None = File(None),
        preset: str = Form("default"),
    ) -> GroupSummary:
        source = image_io.decode_image(await _read_upload(image), source=image.filename or "<upload>")
        reference_image = None
        if reference is not None:
            reference_image = image_io.decode_image(await _read_upload(reference), source=reference.filename or "<reference>")
        config = CREATIVE_3X3_CONFIG if preset == "creative" else DEFAULT_CONFIG
        group = registry.create(source, config=config, reference=reference_image)
        return _summarize_group(group)

    @app.get("/api/groups/{group_id}", response_model=GroupSummary)
    async def read_group(group_id: str) -> GroupSummary:
        return _summarize_group(get_group(group_id))

    @app.delete("/api/groups/{group_id}")
    async def delete_group(group_id: str) -> dict[str, str]:
        try:
            registry.delete(group_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Group not found") from None
        return {"status": "deleted"}

    @app.patch("/api/groups/{group_id}/grid", response_model=GroupSummary)
    async def update_grid(group_id: str, payload: GridUpdate) -> GroupSummary:
        group = get_group(group_id)
        group.set_grid(payload.rows, payload.cols)
        return _summarize_group(group)

    @app.patch("/api/groups/{group_id}/config", response_model=GroupSummary)
    async def update_config(group_id: str, payload: ConfigUpdate) -> GroupSummary:
        group = get_group(group_id)
        group.configure(**payload.model_dump(exclude_none=True))
        return _summarize_group(group)

    @app.post("/api/groups/{group_id}/frames/{index}/offset", response_model=GroupSummary)
    async def nudge_frame(group_id: str, index: int, payload: OffsetNudge) -> GroupSummary:
        group = get_group(group_id)
        group.set_offset(index, payload.dx, payload.dy)
        return _summarize_group(group)

    @app.delete("/api/groups/{group_id}/frames/{index}/offset", response_model=GroupSummary)
    async def reset_frame_offset(group_id: str, index: int) -> GroupSummary:
        group = get_group(group_id)
        group.reset_offset(index)
        return _summarize_group(group)

    @app.post("/api/groups/{group_id}/frames/{index}/exclusion", response_model=GroupSummary)
    async def toggle_frame(group_id: str, index: int) -> GroupSummary:
        group = get_group(group_id)
        group.toggle_exclusion(index)
        return _summarize_group(group)

    @app.get("/api/groups/{group_id}/frames/{index}/image")
    async def frame_image(group_id: str, index: int, keyed: bool = False, scaled: bool = False) -> Response:
        group = get_group(group_id)
        if index < 0 or index >= group.config.capacity:
            raise HTTPException(status_code=404, detail="Frame not found")
        config, offsets = group.config, group.edits.offsets
        frame = compositor.render_frame(group.source, config, offsets, index, keyed=keyed, scaled=scaled)
        return Response(
            content=image_io.encode_png(frame),
            media_type="image/png",
            headers={"X-Group-Version": str(group.version)},
        )

    @app.get("/api/groups/{group_id}/preview", response_model=PreviewFrame)
    async def preview_frame(group_id: str, t: float = 0.0) -> PreviewFrame:
        group = get_group(group_id)
        clock = PlaybackClock(group)
        return PreviewFrame(frame=clock.active_frame(t), version=group.version, period_ms=clock.period_ms())

    @app.get("/api/groups/{group_id}/manifest")
    async def group_manifest(group_id: str) -> dict[str, Any]:
        return build_manifest(get_group(group_id))

    @app.post("/api/groups/{group_id}/analyze", response_model=GroupSummary)
    async def analyze_group(group_id: str) -> GroupSummary:
        group = get_group(group_id)
        client = _require_client()
        with tracker.run(ProcessingStatus.ANALYZING):
            result = await run_in_threadpool(client.analyze_grid, group.source)
            group.set_grid(result["rows"], result["cols"])
            group.set_total_frames(min(result["total_frames"], group.config.capacity))
        return _summarize_group(group)

    @app.post("/api/groups/{group_id}/export/gif", response_model=AssetSummary)
    async def export_gif(group_id: str) -> AssetSummary:
        get_group(group_id)
        if registry.is_assembling(group_id):
            raise AssemblyInProgressError(group_id)
        with tracker.run(ProcessingStatus.RENDERING):
            asset = await run_in_threadpool(pipeline.export, registry, group_id, tracker.update)
        return _summarize_asset(asset)

    @app.post("/api/groups/{group_id}/export/sheet", response_model=AssetSummary)
    async def export_grid_sheet(group_id: str) -> AssetSummary:
        get_group(group_id)
        asset = await run_in_threadpool(export_sheet, registry, group_id)
        return _summarize_asset(asset)

    @app.post("/api/export/gif", response_model=list[AssetSummary])
    async def export_all_groups() -> list[AssetSummary]:
        if not registry.groups():
            raise ValidationError("No groups to export")
        with tracker.run(ProcessingStatus.RENDERING):
            assets = await run_in_threadpool(export_all, registry, pipeline, tracker.update)
        return [_summarize_asset(asset) for asset in assets]

    @app.get("/api/assets", response_model=list[AssetSummary])
    async def list_assets() -> list[AssetSummary]:
        return [_summarize_asset(asset) for asset in registry.assets()]

    @app.get("/api/assets/{asset_id}")
    async def download_asset(asset_id: str) -> Response:
        try:
            asset = registry.get_asset(asset_id)
        except KeyError:
            raise HTTPException(status_code=404, detail="Asset not found") from None
        return Response(
            content=asset.data,
            media_type=asset.media_type,
            headers={"Content-Disposition": f'attachment; filename="{asset.name}"'},
        )

    @app.get("/api/template")
    async def read_template() -> Response:
        image = template_store.load()
        if image is None:
            raise HTTPException(status_code=404, detail="No template saved")
        return Response(content=image_io.encode_png(image), media_type="image/png")

    @app.put("/api/template")
    async def save_template(image: UploadFile = File(...)) -> dict[str, str]:
        template = image_io.decode_image(await _read_upload(image), source=image.filename or "<template>")
        template_store.save(template)
        return {"status": "saved"}

    @app.delete("/api/template")
    async def clear_template() -> dict[str, str]:
        template_store.clear()
        return {"status": "cleared"}

    @app.post("/api/generate", response_model=list[GroupSummary], status_code=201)
    async def generate_groups(
        character: UploadFile | None = File(None),
        template: UploadFile | None = File(None),
        templates: list[UploadFile] | None = File(None),
        start: UploadFile | None = File(None),
        end: UploadFile | None = File(None),
        mode: str = Form("template"),
        prompt: str = Form(""),
        action: str = Form(""),
        grid: str = Form("3x3"),
        size: str = Form("2K"),
        style: str = Form("pixel_art"),
    ) -> list[GroupSummary]:
        """Generate one or more groups; multi-group modes create them in order."""

        client = _require_client()
        if mode not in GENERATION_MODES:
            raise ValidationError(f"Mode must be one of {', '.join(GENERATION_MODES)}")

        if mode == "interpolated":
            if start is None:
                raise ValidationError("Start frame required")
            rows, cols = validators.parse_grid_spec(grid)
            start_image = await _decode_upload(start, "<start>")
            end_image = await _decode_upload(end, "<end>") if end is not None else None
            template_image = await _decode_upload(template, "<template>") if template is not None else None
            with tracker.run(ProcessingStatus.GENERATING):
                group = await run_in_threadpool(
                    workflows.generate_interpolated_group,
                    client, registry, start_image, rows, cols, end_image, template_image, style, size,
                )
            return [_summarize_group(group)]

        if character is None:
            raise ValidationError("Character image required")
        character_image = await _decode_upload(character, "<character>")

        if mode == "action":
            work = partial(
                workflows.generate_action_groups,
                client, registry, character_image, action, prompt, style, size, tracker.update,
            )
        elif mode == "meme_pack":
            work = partial(workflows.generate_meme_pack, client, registry, character_image, style, size, tracker.update)
        else:
            template_images = [await _decode_upload(upload, "<template>") for upload in templates or []]
            if template is not None:
                template_images.insert(0, await _decode_upload(template, "<template>"))
            if not template_images:
                stored = template_store.load()
                if stored is not None:
                    template_images.append(stored)
            work = partial(
                workflows.generate_template_groups,
                client, registry, character_image, template_images, prompt, style, size, tracker.update,
            )

        with tracker.run(ProcessingStatus.GENERATING):
            groups = await run_in_threadpool(work)
        return [_summarize_group(group) for group in groups]

    def _require_client() -> GenerationClient:
        client = app.state.generation_client
        if client is None:
            raise HTTPException(status_code=503, detail="Generation service not configured")
        return client

    return app


async def _decode_upload(file: UploadFile, fallback: str):
    return image_io.decode_image(await _read_upload(file), source=file.filename or fallback)


async def _read_upload(file: UploadFile) -> bytes:
    data = await file.read(MAX_UPLOAD_BYTES + 1)
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Upload exceeds limit")
    return data


app = create_app()
