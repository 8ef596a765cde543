import threading, time, uuid, logging
from collections import OrderedDict
from firebase_admin import storage
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from typing import Callable, Dict, List, Optional
from urllib.parse import urlparse, unquote
from skillswap.config.settings import settings
from skillswap.models.upload import UploadProgress, UploadStatus
from skillswap.utils.errors import (
    UploadCancelledError,
    UploadError,
    UploadTransferError,
    UploadValidationError,
)

logger = logging.getLogger(__name__)


# ****************************************************
#  Storage paths
# ****************************************************

def _extension(file_name: str) -> str:
    if "." not in file_name:
        return "bin"
    return file_name.rsplit(".", 1)[-1].lower()

def generate_file_path(user_id: str, file_name: str, folder: str = "uploads") -> str:
    """Unique storage path: <folder>/<user>/<epoch millis>_<random>.<ext>"""
    return f"{folder}/{user_id}/{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}.{_extension(file_name)}"

def profile_image_path(user_id: str, file_name: str) -> str:
    return generate_file_path(user_id, file_name, folder="profiles")

def message_attachment_path(conversation_id: str, user_id: str, file_name: str) -> str:
    return generate_file_path(user_id, file_name, folder=f"messages/{conversation_id}")

def swap_attachment_path(swap_id: str, user_id: str, file_name: str) -> str:
    return generate_file_path(user_id, file_name, folder=f"swaps/{swap_id}/attachments")

def path_from_public_url(url: str) -> str:
    # https://storage.googleapis.com/<bucket>/<path>
    path = urlparse(url).path
    return unquote("/".join(path.split("/")[2:]))


def delete_file_from_storage(path: str, bucket=None) -> bool:
    """Deletes a blob by path, returns False when nothing was there"""
    bucket = bucket or storage.bucket()
    blob = bucket.blob(path)
    if not blob.exists():
        logger.warning(f"No file found to delete at {path}")
        return False
    blob.delete()
    logger.info(f"Deleted file from storage: {path}")
    return True


# ****************************************************
#  Upload state machine
# ****************************************************

class UploadTask:
    """
    Single-file upload with progress reporting.

    idle -> uploading -> completed | failed
    uploading -> cancelled -> idle   (via cancel())

    Type and size are validated before any byte is sent, so a rejected
    file never leaves the idle state.
    """

    def __init__(
        self,
        allowed_types: Optional[List[str]] = None,
        max_size_mb: Optional[int] = None,
        chunk_size: Optional[int] = None,
        bucket=None,
        on_progress: Optional[Callable[[int], None]] = None,
        on_complete: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.allowed_types = allowed_types or settings.UPLOAD_ALLOWED_TYPES
        self.max_size_mb = max_size_mb or settings.UPLOAD_MAX_SIZE_MB
        self.chunk_size = chunk_size or settings.UPLOAD_CHUNK_SIZE
        self._bucket = bucket
        self.on_progress = on_progress
        self.on_complete = on_complete
        self.on_error = on_error

        self.status = UploadStatus.IDLE
        self.progress = 0
        self.url: Optional[str] = None
        self.error: Optional[str] = None
        self.history: List[UploadStatus] = [UploadStatus.IDLE]

        self._lock = threading.Lock()
        self._cancel_requested = threading.Event()

    def _transition(self, status: UploadStatus):
        self.status = status
        self.history.append(status)

    def _report_progress(self, progress: int):
        if progress == self.progress:
            return
        self.progress = progress
        if self.on_progress:
            self.on_progress(progress)

    def validate(self, content_type: Optional[str], size: int):
        if content_type not in self.allowed_types:
            raise UploadValidationError(
                f"File type not allowed. Allowed types: {', '.join(self.allowed_types)}"
            )
        if size > self.max_size_mb * 1024 * 1024:
            raise UploadValidationError(
                f"File size exceeds the maximum allowed size of {self.max_size_mb}MB"
            )

    def start(self, stream, path: str, content_type: str, size: int) -> str:
        """Upload `stream` to `path` and return the public URL"""
        self.validate(content_type, size)

        with self._lock:
            if self.status == UploadStatus.UPLOADING:
                raise UploadError("An upload is already in progress")
            self._cancel_requested.clear()
            self.progress = 0
            self.url = None
            self.error = None
            self._transition(UploadStatus.UPLOADING)

        logger.info(f"Upload started: {path} ({size} bytes, {content_type})")
        bucket = self._bucket or storage.bucket()
        blob = bucket.blob(path)

        try:
            stream.seek(0)
            writer = blob.open("wb", chunk_size=self.chunk_size, content_type=content_type)
            sent = 0
            while True:
                if self._cancel_requested.is_set():
                    # the writer is never closed, so the resumable session is dropped
                    self._finish_cancel(path)
                chunk = stream.read(self.chunk_size)
                if not chunk:
                    break
                writer.write(chunk)
                sent += len(chunk)
                if size:
                    self._report_progress(min(99, round(sent / size * 100)))

            if self._cancel_requested.is_set():
                self._finish_cancel(path)
            writer.close()
            blob.make_public()
            url = blob.public_url
        except UploadCancelledError:
            raise
        except Exception as e:
            self._fail(e)
            raise UploadTransferError(f"Upload failed: {str(e)}") from e

        self._report_progress(100)
        self.url = url
        self._transition(UploadStatus.COMPLETED)
        logger.info(f"Upload completed: {path}")
        if self.on_complete:
            self.on_complete(url)
        return url

    def cancel(self) -> bool:
        """Request cancellation, returns False when nothing is uploading"""
        if self.status != UploadStatus.UPLOADING:
            return False
        self._cancel_requested.set()
        return True

    def reset(self):
        if self.status == UploadStatus.UPLOADING:
            raise UploadError("Cannot reset while uploading, cancel first")
        self.progress = 0
        self.url = None
        self.error = None
        self._transition(UploadStatus.IDLE)

    def _finish_cancel(self, path: str):
        self._transition(UploadStatus.CANCELLED)
        self.progress = 0
        self.url = None
        self._transition(UploadStatus.IDLE)
        logger.info(f"Upload cancelled: {path}")
        raise UploadCancelledError("Upload cancelled")

    def _fail(self, exc: Exception):
        self.error = str(exc)
        self._transition(UploadStatus.FAILED)
        logger.error(f"Upload failed: {str(exc)}", exc_info=True)
        if self.on_error:
            self.on_error(exc)


class UploadRegistry:
    """
    In-flight uploads addressable by a client-chosen id.

    Finished (completed or failed) tasks stay pollable for `ttl_seconds`,
    and at most `max_entries` tasks are kept; the oldest finished ones are
    evicted first. Running uploads are never evicted.
    """

    FINISHED = (UploadStatus.COMPLETED, UploadStatus.FAILED)

    def __init__(
        self,
        ttl_seconds: Optional[float] = None,
        max_entries: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = settings.UPLOAD_REGISTRY_TTL_SECONDS if ttl_seconds is None else ttl_seconds
        self.max_entries = max_entries or settings.UPLOAD_REGISTRY_MAX_ENTRIES
        self._clock = clock
        self._tasks: "OrderedDict[str, UploadTask]" = OrderedDict()
        self._finished_at: Dict[str, float] = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._tasks)

    def _remove(self, upload_id: str):
        self._tasks.pop(upload_id, None)
        self._finished_at.pop(upload_id, None)

    def _prune(self):
        now = self._clock()
        for upload_id, task in list(self._tasks.items()):
            if task.status in self.FINISHED:
                finished_at = self._finished_at.setdefault(upload_id, now)
                if now - finished_at >= self.ttl_seconds:
                    self._remove(upload_id)

        overflow = len(self._tasks) - self.max_entries
        if overflow > 0:
            finished = sorted(self._finished_at, key=self._finished_at.get)
            for upload_id in finished[:overflow]:
                self._remove(upload_id)

    def register(self, upload_id: str, task: UploadTask):
        with self._lock:
            self._prune()
            existing = self._tasks.get(upload_id)
            if existing and existing.status == UploadStatus.UPLOADING:
                raise UploadError(f"Upload '{upload_id}' is already in progress")
            self._remove(upload_id)
            self._tasks[upload_id] = task

    def mark_finished(self, upload_id: str):
        """Start the pollable window of a task that just reached a final state"""
        with self._lock:
            task = self._tasks.get(upload_id)
            if task is not None and task.status in self.FINISHED:
                self._finished_at.setdefault(upload_id, self._clock())
            self._prune()

    def get(self, upload_id: str) -> Optional[UploadTask]:
        with self._lock:
            self._prune()
            return self._tasks.get(upload_id)

    def discard(self, upload_id: str):
        with self._lock:
            self._remove(upload_id)

    def progress(self, upload_id: str) -> Optional[UploadProgress]:
        task = self.get(upload_id)
        if task is None:
            return None
        return UploadProgress(
            upload_id=upload_id,
            status=task.status,
            progress=task.progress,
            url=task.url,
            error=task.error,
        )


upload_registry = UploadRegistry()

def registry_key(uid: str, upload_id: str) -> str:
    # upload ids are only unique per user
    return f"{uid}:{upload_id}"


# ****************************************************
#  Request helpers
# ****************************************************

def get_upload_size(file: UploadFile) -> int:
    file.file.seek(0, 2)
    size = file.file.tell()
    file.file.seek(0)
    return size

def verify_image(file: UploadFile):
    """Reject files that claim an image type but do not decode as one"""
    try:
        file.file.seek(0)
        with Image.open(file.file) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise UploadValidationError("File is not a valid image") from e
    finally:
        file.file.seek(0)

def upload_file_to_storage(
        file: UploadFile,
        path: str,
        task: Optional[UploadTask] = None,
        upload_id: Optional[str] = None,
) -> str:
    """
    Uploads a request file through an UploadTask and returns the public URL.
    When `upload_id` is given the task is registered so it can be polled
    and cancelled while it runs.
    """
    task = task or UploadTask()
    size = get_upload_size(file)
    if upload_id:
        upload_registry.register(upload_id, task)
    try:
        return task.start(file.file, path, file.content_type, size)
    finally:
        # finished tasks stay pollable, rejected and cancelled ones are dropped
        if upload_id and task.status == UploadStatus.IDLE:
            upload_registry.discard(upload_id)
        elif upload_id:
            upload_registry.mark_finished(upload_id)
