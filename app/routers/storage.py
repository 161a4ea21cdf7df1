from fastapi import APIRouter, Depends, Path, Request, status
from fastapi.responses import FileResponse, RedirectResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from app.core import config
from app.core.errors import ValidationError
from app.core.security import get_current_user
from app.db.models.user import User
from app.db.session import get_db
from app.schemas.storage import StorageId, StorageUrl, UploadResult, UploadTicket
from app.storage import object_store
from app.storage.backends import LocalBackend, get_backend

router = APIRouter()


@router.post("/upload-url", response_model=UploadTicket)
def generate_upload_url(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return object_store.create_upload_ticket(db)


# the ticket itself authorizes the upload, clients PUT/POST straight from the device
@router.post("/upload/{ticket}", response_model=UploadResult)
async def upload(ticket: str, request: Request, db: Session = Depends(get_db)):
    declared = request.headers.get("content-length")
    if declared and declared.isdigit() and int(declared) > config.MAX_UPLOAD_BYTES:
        raise ValidationError(f"File too large (max {config.MAX_UPLOAD_BYTES} bytes)")
    body = await request.body()
    storage_id = await run_in_threadpool(
        object_store.complete_upload, db, ticket, body, request.headers.get("content-type")
    )
    return {"storageId": storage_id}


@router.get("/{storage_id}/url", response_model=StorageUrl)
def get_url(storage_id: StorageId = Path(...), db: Session = Depends(get_db)):
    return {"url": object_store.resolve(db, storage_id)}


@router.get("/files/{storage_id}")
def get_file(storage_id: StorageId = Path(...), db: Session = Depends(get_db)):
    stored = object_store.get_ready_object(db, storage_id)
    backend = get_backend()
    if isinstance(backend, LocalBackend):
        return FileResponse(backend.path(stored.backend_key), media_type=stored.content_type)
    return RedirectResponse(backend.url(stored), status_code=status.HTTP_307_TEMPORARY_REDIRECT)
