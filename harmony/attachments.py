"""
Uploaded audio: save a message attachment to disk and describe it as a track.
"""
import logging
import os
import uuid

from harmony.exceptions import ValidationError
from harmony.messages import msg
from harmony.metrics import metric_inc
from harmony.tracks import TrackMetadata

logger = logging.getLogger("Harmony.Attachments")

AUDIO_EXTENSIONS = {".mp3", ".wav", ".ogg", ".opus", ".flac", ".m4a", ".aac", ".webm", ".mp4", ".mka", ".wma"}


def is_audio_attachment(attachment) -> bool:
    content_type = (getattr(attachment, "content_type", None) or "").lower()
    if content_type.startswith(("audio/", "video/")):
        return True
    ext = os.path.splitext(attachment.filename)[1].lower()
    return ext in AUDIO_EXTENSIONS


def attachment_path(filename: str, download_dir: str) -> str:
    """Unique path for an upload; only the base name of `filename` is kept."""
    name = os.path.basename(filename.replace("\\", "/")).strip() or "attachment"
    if name in (".", ".."):
        name = "attachment"
    return os.path.join(download_dir, f"{uuid.uuid4().hex[:12]}_{name}")


async def save_attachment(attachment, download_dir: str) -> str:
    """Download the attachment into `download_dir` and return the file path."""
    if not is_audio_attachment(attachment):
        raise ValidationError(msg("ATTACHMENT_NOT_AUDIO", filename=attachment.filename))
    os.makedirs(download_dir, exist_ok=True)
    path = attachment_path(attachment.filename, download_dir)
    await attachment.save(path)
    metric_inc("attachment_saved")
    logger.info("Saved attachment %s (%s bytes) to %s", attachment.filename, getattr(attachment, "size", "?"), path)
    return path


def attachment_metadata(attachment, path: str, message) -> TrackMetadata:
    """Title is the file name, URL the message link and author the uploader."""
    return TrackMetadata(
        title=attachment.filename,
        source_url=message.jump_url,
        channel=message.author.name,
        duration=getattr(attachment, "duration", None),
        thumbnail=None,
        stream=path,
        is_local=True,
    )
