from fastapi import APIRouter, Depends, File, UploadFile
from ..deps import Services, get_services

router = APIRouter(prefix="/api", tags=["uploads"])


def _store(file: UploadFile, kind: str, services: Services) -> dict:
    return services.uploads.store(file.file, file.filename, file.content_type, kind=kind)


@router.post("/upload-asset")
def upload_asset(file: UploadFile = File(...), services: Services = Depends(get_services)):
    return _store(file, "asset", services)


@router.post("/upload-file")
def upload_file(file: UploadFile = File(...), services: Services = Depends(get_services)):
    return _store(file, "file", services)


@router.post("/upload-image")
def upload_image(file: UploadFile = File(...), services: Services = Depends(get_services)):
    out = _store(file, "image", services)
    return {**out, "imageUrl": out["url"]}
