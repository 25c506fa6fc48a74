import mimetypes
from typing import List, Optional

from fastapi import APIRouter, File, Request, Response, UploadFile, status
from fastapi.responses import PlainTextResponse, StreamingResponse

from uploads import config
from uploads.errors import BadRequestError
from uploads.logger_config import setup_logger
from uploads.models.file_record import DeleteIn, FileRecord, UploadOut
from uploads.services.coordinator import StorageCoordinator

logger = setup_logger()

router = APIRouter()


def get_coordinator(request: Request) -> StorageCoordinator:
    return request.app.state.coordinator


def client_address(request: Request) -> str:
    if request.client is None:
        return ""
    return f"{request.client.host}:{request.client.port}"


async def serve_file(request: Request, name: str, disposition: str) -> Response:
    """Shared read path for the download and public routes.

    Only the byte store is consulted. HEAD answers with size and
    disposition headers and no body.
    """
    coordinator = get_coordinator(request)
    size = await coordinator.file_size(name)

    content_type, _ = mimetypes.guess_type(name)
    headers = {
        "content-length": str(size),
        "content-disposition": f'{disposition}; filename="{name}"',
    }

    if request.method == "HEAD":
        return Response(
            status_code=200,
            media_type=content_type or "application/octet-stream",
            headers=headers,
        )

    return StreamingResponse(
        coordinator.stream(name),
        media_type=content_type or "application/octet-stream",
        headers=headers,
    )


@router.post("/api/upload", status_code=status.HTTP_201_CREATED, response_model=UploadOut)
async def upload_file(request: Request, file: UploadFile = File(...)):
    """Upload a file as multipart field ``file``."""
    coordinator = get_coordinator(request)
    logger.info(f"Receiving upload request for {file.filename!r}")

    data = await file.read(config.MAX_LENGTH + 1)
    if len(data) > config.MAX_LENGTH:
        raise BadRequestError(
            f"Content size exceeds maximum allowed size ({config.MAX_LENGTH} bytes)"
        )

    stored_name = await coordinator.upload(file.filename or "", data, client_address(request))

    return UploadOut(
        message=f"File '{stored_name}' successfully uploaded.",
        filename=stored_name,
        url=f"https://{request.headers.get('host', '')}/file/{stored_name}",
    )


@router.get("/api/list", response_model=List[FileRecord])
async def list_files(request: Request):
    return await get_coordinator(request).list_files()


@router.api_route("/api/download", methods=["GET", "HEAD"])
async def download_file(request: Request, name: Optional[str] = None):
    if not name:
        raise BadRequestError("Missing 'name' parameter")
    return await serve_file(request, name, "attachment")


@router.delete("/api/delete", response_class=PlainTextResponse)
async def delete_file(payload: DeleteIn, request: Request):
    logger.info(f"Receiving delete request for {payload.filename!r}")
    await get_coordinator(request).delete(payload.filename)
    return f"File '{payload.filename}' successfully deleted."


@router.api_route("/file/{name:path}", methods=["GET", "HEAD"])
async def public_file_access(request: Request, name: str):
    """Serve a stored file without authentication."""
    return await serve_file(request, name, "inline")
