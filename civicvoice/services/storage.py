#civicvoice\services\storage.py
import base64, logging, uuid
import requests
from civicvoice.core.config import settings
from civicvoice.core.errors import UploadFailed, UploadTooLarge, ValidationError

logger = logging.getLogger(__name__)

ALLOWED = {"image/jpeg", "image/png", "image/webp", "image/gif"}

def check_image(data: bytes, content_type: str) -> None:
    if content_type not in ALLOWED:
        raise ValidationError("image", "Unsupported image type")
    if len(data) > settings.max_image_bytes:
        raise UploadTooLarge(f"Image exceeds {settings.max_image_bytes // (1024 * 1024)}MB")

def read_upload(fileobj) -> bytes:
    """Reads an uploaded file, stopping one byte past the size limit."""
    data = fileobj.read(settings.max_image_bytes + 1)
    if len(data) > settings.max_image_bytes:
        raise UploadTooLarge(f"Image exceeds {settings.max_image_bytes // (1024 * 1024)}MB")
    return data

def upload_image(data: bytes, content_type: str, path: str) -> str:
    """Uploads to Supabase Storage via REST; returns public URL (bucket must be public)."""
    check_image(data, content_type)
    if not (settings.supabase_url and settings.supabase_service_role):
        # local development without object storage: inline the image
        b64 = base64.b64encode(data).decode('utf-8')
        return f"data:{content_type};base64,{b64}"
    url = f"{settings.supabase_url}/storage/v1/object/{settings.supabase_bucket}/{path}"
    try:
        r = requests.post(url, headers={
            "Authorization": f"Bearer {settings.supabase_service_role}",
            "Content-Type": content_type,
            "x-upsert": "true",
        }, data=data, timeout=30)
        r.raise_for_status()
    except requests.RequestException as e:
        logger.error(f"Image upload to {path} failed: {e}", exc_info=True)
        raise UploadFailed() from e
    # public URL pattern:
    return f"{settings.supabase_url}/storage/v1/object/public/{settings.supabase_bucket}/{path}"

def make_object_key(owner_id: int, filename: str) -> str:
    ext = (filename.rsplit(".",1)[-1] if "." in filename else "jpg").lower()
    return f"{owner_id}/{uuid.uuid4().hex}.{ext}"
