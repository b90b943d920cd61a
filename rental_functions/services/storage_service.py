import logging
from firebase_admin import storage

log = logging.getLogger(__name__)


def receipt_storage_path(owner_id: str, receipt_number: str) -> str:
    return f"Owners/{owner_id}/receipts/{receipt_number}.pdf"


def upload_to_storage(file_bytes: bytes, owner_id: str, receipt_number: str, file_name: str = None) -> str | None:
    """
    Uploads a receipt PDF to Firebase Storage.
    `file_name` is kept as the blob's Content-Disposition so downloads get a readable name.
    Returns the storage path if successful, None otherwise.
    """
    try:
        bucket = storage.bucket()

        file_path = receipt_storage_path(owner_id, receipt_number)
        blob = bucket.blob(file_path)
        if file_name:
            blob.content_disposition = f'inline; filename="{file_name}"'

        blob.upload_from_string(
            file_bytes,
            content_type='application/pdf'
        )

        log.info(f"Successfully uploaded receipt to {file_path}.")
        return file_path

    except Exception as e:
        log.error(f"Error uploading to Firebase Storage: {e}")
        return None


def download_from_storage(file_path: str) -> tuple[bytes, str | None] | None:
    """
    Downloads a file from Firebase Storage.
    Returns (content, content_disposition), or None if it does not exist.
    """
    bucket = storage.bucket()
    blob = bucket.get_blob(file_path)

    if blob is None:
        log.warning(f"File not found in storage at: {file_path}")
        return None

    return blob.download_as_bytes(), blob.content_disposition
