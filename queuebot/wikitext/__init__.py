"""Wikitext document model and transcoding."""

from .document import CategoryTag, Document, Template, Text, WikiLink
from .transcoder import Transcoder, WikitextTranscoder

__all__ = [
    "CategoryTag", "Document", "Template", "Text", "WikiLink",
    "Transcoder", "WikitextTranscoder",
]
