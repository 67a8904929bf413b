"""
Attachments — uploaded documents that add context to a chat message.

An attachment is exactly one of PdfAttachment, ImageAttachment or
GenericAttachment. Text extraction belongs to an AttachmentExtractor;
process_attachments() turns a list into one prompt block, and a failure on
any single attachment degrades to a placeholder line instead of failing
the whole request.
"""

from __future__ import annotations

import abc
import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Union

from andy.errors import AttachmentProcessingError, ValidationFailed

logger = logging.getLogger(__name__)

MAX_TEXT_CHARS = 8000


@dataclass(frozen=True)
class PdfAttachment:
    name: str
    content: bytes | str
    metadata: dict = field(default_factory=dict)
    kind = "pdf"


@dataclass(frozen=True)
class ImageAttachment:
    name: str
    content: bytes | str
    metadata: dict = field(default_factory=dict)
    kind = "image"


@dataclass(frozen=True)
class GenericAttachment:
    """Anything else: CSV, plain text, spreadsheets exported as text."""
    name: str
    content: bytes | str
    metadata: dict = field(default_factory=dict)
    kind = "generic"


Attachment = Union[PdfAttachment, ImageAttachment, GenericAttachment]

_KINDS: dict[str, type] = {
    "pdf": PdfAttachment,
    "image": ImageAttachment,
    "generic": GenericAttachment,
    "csv": GenericAttachment,
    "text": GenericAttachment,
}


def attachment_from_dict(data: dict) -> Attachment:
    """
    Build an attachment from an API payload:
        {"type": "pdf", "name": "w2.pdf", "content": "...", "encoding": "base64"}
    Unlisted types are treated as generic documents.
    """
    if not isinstance(data, dict):
        raise ValidationFailed("Each attachment must be an object", code="INVALID_ATTACHMENT")
    kind = str(data.get("type", "generic")).lower()
    cls = _KINDS.get(kind, GenericAttachment)
    content = data.get("content", "")
    if data.get("encoding") == "base64" and isinstance(content, str):
        try:
            content = base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationFailed(
                f"Attachment '{data.get('name', '')}' is not valid base64",
                code="INVALID_ATTACHMENT",
            ) from e
    return cls(name=data.get("name", "attachment"), content=content, metadata=data.get("metadata") or {})


class AttachmentExtractor(abc.ABC):
    """Turns an attachment into prompt-ready text. Implementations may raise."""

    @abc.abstractmethod
    async def extract_pdf(self, attachment: PdfAttachment) -> str:
        ...

    @abc.abstractmethod
    async def extract_image(self, attachment: ImageAttachment) -> str:
        ...

    @abc.abstractmethod
    async def extract_generic(self, attachment: GenericAttachment) -> str:
        ...

    async def extract_text(self, attachment: Attachment) -> str:
        if isinstance(attachment, PdfAttachment):
            return await self.extract_pdf(attachment)
        if isinstance(attachment, ImageAttachment):
            return await self.extract_image(attachment)
        if isinstance(attachment, GenericAttachment):
            return await self.extract_generic(attachment)
        raise TypeError(f"Unsupported attachment type: {type(attachment).__name__}")


class TextExtractor(AttachmentExtractor):
    """
    Default extractor: decodes text-like uploads (CSV, TXT) directly.
    PDF and image extraction need a document service plugged in; without one
    they raise and the orchestrator substitutes a placeholder.
    """

    def __init__(self, max_chars: int = MAX_TEXT_CHARS):
        self.max_chars = max_chars

    async def extract_pdf(self, attachment: PdfAttachment) -> str:
        raise AttachmentProcessingError(f"No PDF extractor configured for '{attachment.name}'")

    async def extract_image(self, attachment: ImageAttachment) -> str:
        raise AttachmentProcessingError(f"No image extractor configured for '{attachment.name}'")

    async def extract_generic(self, attachment: GenericAttachment) -> str:
        content = attachment.content
        if isinstance(content, bytes):
            try:
                content = content.decode("utf-8")
            except UnicodeDecodeError as e:
                raise AttachmentProcessingError(f"'{attachment.name}' is not UTF-8 text") from e
        if len(content) > self.max_chars:
            content = content[: self.max_chars] + "\n[truncated]"
        return content


def placeholder(attachment: Attachment) -> str:
    return f"[{attachment.kind} '{attachment.name}' could not be processed]"


async def process_attachments(attachments: list[Attachment], extractor: AttachmentExtractor) -> str:
    """Extract every attachment in order and join them into one block."""
    parts = []
    for attachment in attachments:
        try:
            text = await extractor.extract_text(attachment)
        except Exception as e:
            logger.warning("Attachment '%s' (%s) failed: %s", attachment.name, attachment.kind, e)
            text = placeholder(attachment)
        parts.append(f"[{attachment.kind}: {attachment.name}]\n{text}")
    return "\n\n".join(parts)
