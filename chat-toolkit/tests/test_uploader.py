import pytest
from fakes import FailingStorage, b64

from chat_toolkit.attachments.base import Attachment
from chat_toolkit.attachments.uploader import RemoteStorageUploader
from chat_toolkit.exceptions import AttachmentUploadFailed
from chat_toolkit.storage.in_memory import InMemoryObjectStorage


async def test_upload_records_remote_reference():
    storage = InMemoryObjectStorage()
    attachment = Attachment(name="cat.png", mime_type="image/png", payload=f"data:image/png;base64,{b64(b'PNGDATA')}")

    stored = await RemoteStorageUploader(storage).upload(attachment)

    assert stored.deletion_handle.startswith("chat-files/")
    assert stored.deletion_handle.endswith("-cat.png")
    assert attachment.remote_url == stored.url
    assert attachment.remote_deletion_handle == stored.deletion_handle
    assert attachment.uploaded_at is not None
    assert storage.objects[stored.deletion_handle] == (b"PNGDATA", "image/png")


async def test_already_uploaded_attachment_is_not_sent_again():
    storage = InMemoryObjectStorage()
    attachment = Attachment(name="a.txt", mime_type="text/plain", remote_url="memory://objects/a.txt", remote_deletion_handle="a.txt")

    stored = await RemoteStorageUploader(storage).upload(attachment)

    assert stored.url == "memory://objects/a.txt"
    assert storage.objects == {}


async def test_storage_failure_raises_upload_failed():
    attachment = Attachment(name="a.txt", mime_type="text/plain", payload=b64("hello"))

    with pytest.raises(AttachmentUploadFailed, match="Failed to upload a.txt"):
        await RemoteStorageUploader(FailingStorage()).upload(attachment)

    assert attachment.remote_url is None


async def test_missing_payload_raises_upload_failed():
    with pytest.raises(AttachmentUploadFailed):
        await RemoteStorageUploader(InMemoryObjectStorage()).upload(Attachment(name="a.png", mime_type="image/png"))


def test_persisted_attachment_keeps_only_the_remote_reference():
    attachment = Attachment(
        name="a.txt",
        mime_type="text/plain",
        size=5,
        payload=b64("hello"),
        remote_url="memory://objects/a.txt",
        remote_deletion_handle="a.txt",
        uploaded_at=1,
        extracted_text="hello",
    )

    assert attachment.model_dump(by_alias=True) == {
        "name": "a.txt",
        "type": "text/plain",
        "size": 5,
        "remoteUrl": "memory://objects/a.txt",
        "remoteDeletionHandle": "a.txt",
        "uploadedAt": 1,
    }
