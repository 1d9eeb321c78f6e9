"""
Protocol definitions for the collaborators of IndexService.

The index never reads files itself. A DocumentSource supplies documents
(path, basename, structured metadata) for full rebuilds; single-document
events are pushed in by the host.
"""

from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from .types import DateKey, Document


# Listener signature: changed days, or None for "everything may have changed"
ChangeListener = Callable[[Optional[list[DateKey]]], None]


@runtime_checkable
class DocumentSource(Protocol):
    """
    Supplies documents and their metadata.

    Implemented by:
    - MarkdownVault (a directory of Markdown files with YAML frontmatter)
    - any host application wrapping its own metadata cache
    """

    def documents(self) -> Iterable[Document]: ...

    def get(self, path: str) -> Optional[Document]: ...
