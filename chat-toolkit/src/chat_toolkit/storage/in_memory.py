from chat_toolkit.storage.base import ObjectStorage, StoredObject


class InMemoryObjectStorage(ObjectStorage):
    """Keeps uploaded objects in a dict. Meant for development and tests."""

    def __init__(self, base_url: str = "memory://objects") -> None:
        self.base_url = base_url.rstrip("/")
        self.objects: dict[str, tuple[bytes, str]] = {}

    async def upload(self, data: bytes, key: str, content_type: str) -> StoredObject:
        self.objects[key] = (data, content_type)
        return StoredObject(url=f"{self.base_url}/{key}", deletion_handle=key)

    async def delete(self, deletion_handle: str) -> bool:
        return self.objects.pop(deletion_handle, None) is not None
