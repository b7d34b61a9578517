"""
Pushes attachment bytes to object storage.

Uploads are all-or-nothing per submission: any single failure raises
'AttachmentUploadFailed' and the controller aborts before persisting the turn
or calling the model. An attachment that already carries a remote reference
(re-submitted during an edit) is not uploaded again.
"""

from loguru import logger

from chat_toolkit.attachments.base import Attachment, decode_payload
from chat_toolkit.exceptions import AttachmentUploadFailed
from chat_toolkit.storage.base import ObjectStorage, StoredObject
from chat_toolkit.utils.time import get_current_timestamp

KEY_PREFIX = "chat-files"


class RemoteStorageUploader:
    def __init__(self, storage: ObjectStorage) -> None:
        self.storage = storage

    async def upload(self, attachment: Attachment) -> StoredObject:
        if attachment.remote_url:
            logger.debug(f"Skipping upload of {attachment.name!r}, already stored at {attachment.remote_url}")
            return StoredObject(url=attachment.remote_url, deletion_handle=attachment.remote_deletion_handle or "")

        if not attachment.payload:
            raise AttachmentUploadFailed(attachment.name, "no payload to upload")

        data = decode_payload(attachment.payload)
        key = f"{KEY_PREFIX}/{get_current_timestamp()}-{attachment.name}"
        try:
            stored = await self.storage.upload(data, key, attachment.mime_type)
        except Exception as exc:
            logger.error(f"Failed to upload {attachment.name!r}: {exc}")
            raise AttachmentUploadFailed(attachment.name, str(exc)) from exc

        attachment.remote_url = stored.url
        attachment.remote_deletion_handle = stored.deletion_handle
        attachment.uploaded_at = get_current_timestamp()
        logger.info(f"Uploaded {attachment.name!r} ({len(data)} bytes) to {stored.url}")
        return stored
