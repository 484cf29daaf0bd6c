"""FastAPI router for file upload, listing and retrieval endpoints."""
import logging

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse, PlainTextResponse
from starlette.datastructures import UploadFile as StarletteUploadFile

from .paths import PathEscapeError
from .schemas import FileListResponse, FileUploadResponse
from .service import (
    DirectoryNotFoundError,
    FileStorageService,
    NoFileSuppliedError,
    UploadTooLargeError,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["files"])


@router.get("/files/list", response_model=FileListResponse)
async def list_files(
    path: str = Query("", description="Directory relative to the storage root"),
):
    """List a directory of the file store.

    Directories are listed before files, each group sorted by name.

    Args:
        path: Directory relative to the storage root ("" = root).

    Returns:
        FileListResponse with the directory's direct children.

    Raises:
        HTTPException 403: If path escapes the storage root
        HTTPException 404: If path is not an existing directory
    """
    service = FileStorageService.get_instance()
    try:
        files = await run_in_threadpool(service.list_directory, path)
    except PathEscapeError:
        raise HTTPException(status_code=403, detail="Access denied")
    except DirectoryNotFoundError:
        raise HTTPException(status_code=404, detail="Directory not found")
    except Exception as e:
        logger.error(f"[Files] Listing {path!r} failed: {e}")
        return PlainTextResponse("Failed to list files", status_code=500)

    return FileListResponse(files=files)


@router.post("/upload", response_model=FileUploadResponse)
async def upload_file(request: Request):
    """Upload a file into today's date partition.

    The multipart form is read directly so that a missing ``file`` field and
    a ``file`` field carrying plain text are both reported as 400.

    Returns:
        FileUploadResponse with the storage name and public URL

    Raises:
        HTTPException 400: If no file was supplied
        HTTPException 413: If the file exceeds the configured limit
    """
    async with request.form() as form:
        file = form.get("file")
        if not isinstance(file, StarletteUploadFile):
            raise HTTPException(status_code=400, detail="No file uploaded")

        service = FileStorageService.get_instance()
        try:
            stored = await service.store(file.filename or "", file)
        except NoFileSuppliedError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except UploadTooLargeError as e:
            raise HTTPException(status_code=413, detail=str(e))
        except Exception as e:
            logger.error(f"[Files] Upload of {file.filename!r} failed: {e}")
            return PlainTextResponse(str(e), status_code=500)

    logger.info(f"[Files] File uploaded: {stored.originalName} -> {stored.publicUrl}")

    return FileUploadResponse(
        fileName=stored.storageName,
        url=stored.publicUrl,
        originalName=stored.originalName,
    )


@router.get("/files/{file_path:path}")
async def download_file(file_path: str):
    """Serve a previously stored file by its public path.

    Raises:
        HTTPException 403: If file_path escapes the storage root
        HTTPException 404: If no such file exists
    """
    service = FileStorageService.get_instance()
    try:
        resolved = await run_in_threadpool(service.get_file_path, file_path)
    except PathEscapeError:
        raise HTTPException(status_code=403, detail="Access denied")

    if resolved is None:
        raise HTTPException(status_code=404, detail="File not found")

    return FileResponse(path=resolved)
