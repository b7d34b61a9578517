"""
Object storage abstractions.

An 'ObjectStorage' accepts a byte buffer plus metadata and returns a stable URL
and a deletion handle. Concrete implementations: 'S3ObjectStorage',
'InMemoryObjectStorage'. Implementations may raise any exception on failure;
'RemoteStorageUploader' converts it into 'AttachmentUploadFailed'.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel


class StoredObject(BaseModel):
    url: str
    deletion_handle: str


class ObjectStorage(ABC):
    @abstractmethod
    async def upload(self, data: bytes, key: str, content_type: str) -> StoredObject:
        """Store 'data' under 'key' and return its public reference."""
        pass

    @abstractmethod
    async def delete(self, deletion_handle: str) -> bool:
        pass
