"""File API routes (login required): upload, list, download, delete."""
from __future__ import annotations

import os
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from vault.errors import FileTooLarge, InvalidKey, ObjectNotFound, StorageError
from vault.objects import ObjectStore
from web.auth import require_session

router = APIRouter(prefix="/api", tags=["files"], dependencies=[Depends(require_session)])


def get_object_store(request: Request) -> ObjectStore:
    return request.app.state.objects


def _declared_size(file: UploadFile) -> int:
    if file.size is not None:
        return file.size
    # Spooled upload without a recorded size: measure it
    file.file.seek(0, os.SEEK_END)
    size = file.file.tell()
    file.file.seek(0)
    return size


def _content_disposition(key: str) -> str:
    # Header values must be latin-1; non-ASCII names go in the RFC 5987 filename* form
    fallback = key.encode("ascii", "replace").decode("ascii").replace('"', "_")
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(key)}"


def _filename_param(filename: Optional[str]) -> str:
    if not filename:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Filename must not be empty")
    return filename


@router.post("/upload")
async def upload_file(
    file: UploadFile = File(...),
    objects: ObjectStore = Depends(get_object_store),
):
    """Store the uploaded file under its base name."""
    size = _declared_size(file)
    try:
        result = await run_in_threadpool(
            objects.upload, file.file, file.filename or "", size, file.content_type
        )
    except FileTooLarge:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Uploaded file must not exceed 1GB")
    except InvalidKey:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid filename")
    except StorageError:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to upload file to storage")
    finally:
        await file.close()
    return {
        "message": "File uploaded successfully",
        "filename": result.key,
        "size": result.size,
        "duration": f"{result.duration:.3f}s",
    }


@router.get("/files")
async def list_files(objects: ObjectStore = Depends(get_object_store)):
    """List every object in the bucket."""
    try:
        stored = await run_in_threadpool(objects.list_objects)
    except StorageError:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to list files")
    return [
        {
            "name": o.key,
            "size": o.size,
            "lastModified": o.last_modified.isoformat() if o.last_modified else None,
        }
        for o in stored
    ]


@router.get("/download")
async def download_file(
    filename: Optional[str] = Query(None),
    objects: ObjectStore = Depends(get_object_store),
):
    """Stream an object back as an attachment."""
    key = _filename_param(filename)
    try:
        meta, stream = await run_in_threadpool(objects.download, key)
    except ObjectNotFound:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "File not found")
    headers = {
        "Content-Disposition": _content_disposition(meta.key),
        "Content-Length": str(meta.size),
    }
    return StreamingResponse(
        stream,
        media_type=meta.content_type,
        headers=headers,
        background=BackgroundTask(stream.close),
    )


@router.delete("/delete")
async def delete_file(
    filename: Optional[str] = Query(None),
    objects: ObjectStore = Depends(get_object_store),
):
    """Remove an object from the bucket."""
    key = _filename_param(filename)
    try:
        await run_in_threadpool(objects.delete, key)
    except StorageError:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to delete file")
    return {"message": "File deleted successfully", "filename": key}
