"""Folder tree helpers: build an in-memory arena of one owner's folders.

Rules shared by folder_service and file_service:
- The arena is keyed by folder id; parents are weak references, so a parent
  that is missing from the arena simply ends the walk (dangling parent);
- Every walk is iterative and tracks visited ids, so a corrupted parent chain
  with a cycle terminates instead of looping forever.
"""

from __future__ import annotations

from collections import defaultdict, deque
from typing import Iterable, Optional, Protocol

from app.packages.drive.core.constants import ROOT_FOLDER_SENTINEL


class _FolderLike(Protocol):
    id: int
    name: str
    parent_id: Optional[int]


class FolderTree:
    def __init__(self, folders: Iterable[_FolderLike]):
        self._names: dict[int, str] = {}
        self._parents: dict[int, Optional[int]] = {}
        self._children: dict[Optional[int], list[int]] = defaultdict(list)
        for folder in folders:
            self._names[folder.id] = folder.name
            self._parents[folder.id] = folder.parent_id
            self._children[folder.parent_id].append(folder.id)

    def full_path(self, folder_id: int) -> str:
        """Return root-to-leaf names joined by ``/``; unknown ids yield ``""``."""
        names: list[str] = []
        seen: set[int] = set()
        current: Optional[int] = folder_id
        while current is not None and current in self._names and current not in seen:
            seen.add(current)
            names.append(self._names[current])
            current = self._parents[current]
        names.reverse()
        return "/".join(names)

    def descendants(self, folder_id: int) -> list[int]:
        """Return ``folder_id`` followed by every folder below it (breadth-first)."""
        if folder_id not in self._names:
            return []
        ordered: list[int] = []
        seen: set[int] = set()
        queue: deque[int] = deque([folder_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            ordered.append(current)
            queue.extend(child for child in self._children.get(current, ()) if child not in seen)
        return ordered


def parse_folder_ref(raw: object) -> Optional[int]:
    """Turn a route/form folder reference into an id; empty values and ``root`` mean root scope.

    Raises ``ValueError`` for anything that is not a positive integer so the
    caller can decide between a 403 and a 404.
    """
    if raw is None:
        return None
    if isinstance(raw, int) and not isinstance(raw, bool):
        value = raw
    else:
        text = str(raw).strip()
        if not text or text.lower() in {ROOT_FOLDER_SENTINEL, "null"}:
            return None
        value = int(text)
    if value <= 0:
        raise ValueError(f"invalid folder id: {raw!r}")
    return value
