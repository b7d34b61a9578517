"""
Error taxonomy for the chat pipeline.

Every error the pipeline raises on purpose derives from 'ChatPipelineError', so
the HTTP layer can turn any of them into a '{success: false, error}' envelope
with one except clause. Where each error is handled differs:

    'AttachmentError' and subclasses  - recovered inside 'AttachmentIngestor';
                                        the attachment degrades to inline error text.
    'AttachmentUploadFailed'          - fatal for the submission, raised before
                                        anything is persisted or sent to the model.
    'MemoryServiceError'              - always swallowed by 'MemoryAugmenter' and
                                        by memory write-back.
    'ModelProviderError'              - surfaced to the caller.
    'PersistenceError'                - surfaced to the caller, distinct from model
                                        errors ("got an answer but could not save it").
"""


class ChatPipelineError(Exception):
    """Base class for all pipeline errors."""


class AttachmentError(ChatPipelineError):
    """An attachment could not be turned into text."""


class InvalidAttachment(AttachmentError):
    pass


class UnsupportedAttachmentType(AttachmentError):
    pass


class ExtractionTimeout(AttachmentError):
    pass


class ExtractionFailed(AttachmentError):
    """The parser for a supported type raised on the attachment's bytes."""


class AttachmentUploadFailed(ChatPipelineError):
    def __init__(self, name: str, reason: str | None = None) -> None:
        self.name = name
        self.reason = reason
        message = f"Failed to upload {name}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MemoryServiceError(ChatPipelineError):
    pass


class ModelProviderError(ChatPipelineError):
    pass


class PersistenceError(ChatPipelineError):
    """A conversation write failed. 'full_content' holds a generated reply that could not be saved."""

    def __init__(self, message: str, full_content: str | None = None) -> None:
        self.full_content = full_content
        super().__init__(message)


class ConversationNotFound(ChatPipelineError):
    """Raised for unknown ids and for conversations owned by another user alike."""

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation {conversation_id} not found")


class InvalidSubmission(ChatPipelineError):
    pass


class InvalidEditIndex(InvalidSubmission):
    pass
