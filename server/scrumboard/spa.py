"""
Static asset serving with a client-side routing fallback for the SPA.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse

INDEX_DOCUMENT = "index.html"
ALL_METHODS = ("GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS")


def _resolve_asset(root: Path, relative_path: str) -> Optional[Path]:
    if not relative_path:
        return None
    candidate = (root / relative_path).resolve()
    # Never serve anything outside the SPA directory.
    if root not in candidate.parents:
        return None
    if candidate.is_file():
        return candidate
    return None


def create_spa_router(spa_dir: str | Path, api_prefix: str = "/api") -> APIRouter:
    """
    Build a catch-all router: existing files under ``spa_dir`` are served
    directly, unmatched API/health paths are 404s, and every other path gets
    the SPA entry document. Include it after all other routers.
    """
    root = Path(spa_dir).resolve()
    reserved_prefixes = (api_prefix.rstrip("/") + "/", "/health")
    router = APIRouter()

    @router.api_route(
        "/{full_path:path}", methods=list(ALL_METHODS), include_in_schema=False
    )
    def serve_spa(full_path: str, request: Request):
        readable = request.method in ("GET", "HEAD")
        if readable:
            asset = _resolve_asset(root, full_path)
            if asset is not None:
                return FileResponse(asset)

        if request.url.path.startswith(reserved_prefixes):
            raise HTTPException(status_code=404, detail="API endpoint not found")
        if not readable:
            raise HTTPException(status_code=405, detail="Method Not Allowed")

        index = root / INDEX_DOCUMENT
        if not index.is_file():
            raise HTTPException(status_code=404, detail="SPA build not found")
        return FileResponse(index)

    return router
