#!/usr/bin/env python3
"""
CardSwap API Server - FastAPI implementation.

The HTTP surface is a thin render layer over one SessionController:
- Credential entry / host key selection / clearing
- Reference and character uploads (file picker or drag-and-drop source)
- Card generation and iterative refinement
- PNG download of the current card

Usage:
    python3 -m cardswap serve
    python3 -m api.server --port 3850
    uvicorn api.server:app --port 3850 --reload
"""

import logging
import sys
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel

from cardswap.config import get_config
from cardswap.export import download_filename, png_bytes
from cardswap.session import ErrorKind, SessionController, Slot

log = logging.getLogger("cardswap.api")

app = FastAPI(
    title="CardSwap API",
    description="Trading-card character swap on Gemini native image generation",
    version="1.0.0",
)

# CORS for local front-end development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173", "http://localhost:8080"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================
# Pydantic Models
# ============================================================

class ManualKey(BaseModel):
    api_key: str


class InputsUpdate(BaseModel):
    character_name: Optional[str] = None
    user_instructions: Optional[str] = None
    refinement_prompt: Optional[str] = None


class RefineBody(BaseModel):
    instruction: Optional[str] = None


# ============================================================
# Session
# ============================================================

_controller: Optional[SessionController] = None

LOCAL_REJECTIONS = {
    ErrorKind.INPUT_REJECTED,
    ErrorKind.CREDENTIAL_MISSING,
    ErrorKind.INVALID_CREDENTIAL,
}
INGEST_FAILURES = {ErrorKind.UNREADABLE_FILE, ErrorKind.UNDECODABLE_IMAGE}


def get_controller() -> SessionController:
    """Get the process-wide session controller."""
    global _controller
    if _controller is None:
        _controller = SessionController(get_config())
    return _controller


def set_controller(controller: Optional[SessionController]):
    """Swap the session controller (tests, embedding)."""
    global _controller
    _controller = controller


@app.on_event("startup")
async def startup_event():
    """Discover a credential before the first request."""
    controller = get_controller()
    state = await controller.initialize()
    log.info(f"Session ready: phase={state.phase.value} mode={state.credential_mode}")


def snapshot(include_images: bool = False) -> dict:
    controller = get_controller()
    state = controller.state
    data = state.to_dict()
    if include_images:
        data["generated_image"] = state.generated_image
        data["reference_preview"] = state.reference.preview_url if state.reference else None
        data["character_preview"] = state.character.preview_url if state.character else None
    return data


def _reject_on(kinds: set, status_code: int):
    error = get_controller().state.error
    if error is not None and error.kind in kinds:
        raise HTTPException(status_code=status_code, detail=error.to_dict())


def _parse_slot(slot: str) -> Slot:
    try:
        return Slot(slot)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown image slot: {slot}")


# ============================================================
# API Endpoints
# ============================================================

@app.get("/health")
async def health():
    return {
        "service": "CardSwap API",
        "version": "1.0.0",
        "status": "healthy",
        "timestamp": datetime.now().isoformat(),
    }


@app.get("/state")
async def get_state(include_images: bool = Query(False)):
    return snapshot(include_images)


@app.get("/cost")
async def get_cost():
    controller = get_controller()
    return {
        "display": controller.cost_display(),
        "usd_per_image": controller.config.cost_per_image_usd,
        "jpy_per_image": controller.config.cost_in_yen(),
        "return_url": controller.config.return_url,
    }


@app.post("/credential")
async def submit_credential(body: ManualKey):
    get_controller().submit_manual_key(body.api_key)
    _reject_on({ErrorKind.INVALID_CREDENTIAL}, 400)
    return snapshot()


@app.post("/credential/select")
async def select_credential():
    await get_controller().select_host_key()
    _reject_on({ErrorKind.CREDENTIAL_MISSING}, 400)
    return snapshot()


@app.delete("/credential")
async def clear_credential():
    get_controller().clear_credential()
    return snapshot()


@app.post("/images/{slot}")
async def upload_image(
    slot: str,
    file: UploadFile = File(...),
    source: str = Query("picker", pattern="^(picker|drop)$"),
):
    """Upload an input image; drops are filtered to image/* before ingestion."""
    image_slot = _parse_slot(slot)
    data = await file.read()
    controller = get_controller()
    before = controller.state
    state = controller.load_image(
        image_slot,
        data,
        mime_type=file.content_type,
        filename=file.filename,
        dropped=(source == "drop"),
    )
    if state is not before:
        _reject_on(INGEST_FAILURES, 422)
    return {**snapshot(), "accepted": state.image(image_slot) is not before.image(image_slot)}


@app.delete("/images/{slot}")
async def remove_image(slot: str):
    get_controller().remove_image(_parse_slot(slot))
    return snapshot()


@app.put("/inputs")
async def update_inputs(body: InputsUpdate):
    get_controller().update_inputs(
        character_name=body.character_name,
        user_instructions=body.user_instructions,
        refinement_prompt=body.refinement_prompt,
    )
    return snapshot()


@app.post("/generate")
async def generate():
    controller = get_controller()
    if controller.state.busy:
        raise HTTPException(status_code=409, detail="A request is already in progress")
    await controller.generate()
    _reject_on(LOCAL_REJECTIONS, 400)
    return snapshot(include_images=True)


@app.post("/refine")
async def refine(body: Optional[RefineBody] = None):
    controller = get_controller()
    if controller.state.busy:
        raise HTTPException(status_code=409, detail="A request is already in progress")
    await controller.refine(body.instruction if body else None)
    _reject_on(LOCAL_REJECTIONS, 400)
    return snapshot(include_images=True)


@app.get("/download")
async def download():
    image = get_controller().state.generated_image
    if image is None:
        raise HTTPException(status_code=404, detail="No generated image")
    filename = download_filename()
    return Response(
        content=png_bytes(image),
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ============================================================
# Main
# ============================================================

def main():
    import argparse

    import uvicorn

    config = get_config()
    parser = argparse.ArgumentParser(description="CardSwap API Server")
    parser.add_argument("--port", type=int, default=config.port, help="Port to run on")
    parser.add_argument("--host", default=config.host, help="Host to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    args = parser.parse_args()

    print(f"Starting CardSwap API on http://{args.host}:{args.port}")
    print(f"Docs: http://{args.host}:{args.port}/docs")
    uvicorn.run(
        "api.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
