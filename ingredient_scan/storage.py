"""Local-filesystem object storage with upload-finalize notifications."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


@dataclass(frozen=True)
class StoredObject:
    bucket: str
    name: str
    content_type: Optional[str] = None
    size: int = 0


FinalizeListener = Callable[[StoredObject], None]


class ObjectStorage:
    """
    Bucket-scoped object store kept under ``root/<bucket>/``.

    Content type is kept in a ``.content-type`` sidecar next to each object.
    Listeners registered with :meth:`on_finalize` are called once per
    completed :meth:`upload`.
    """

    def __init__(self, root: str, bucket: str, public_base_url: str = ""):
        self.root = Path(root)
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")
        self._listeners: List[FinalizeListener] = []

    def _object_path(self, name: str) -> Path:
        base = (self.root / self.bucket).resolve()
        path = (base / name).resolve()
        if base not in path.parents:
            raise ValueError(f"Object name escapes bucket: {name}")
        return path

    def on_finalize(self, listener: FinalizeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def upload(self, name: str, data: bytes, content_type: Optional[str] = None) -> StoredObject:
        path = self._object_path(name)
        os.makedirs(path.parent, exist_ok=True)
        path.write_bytes(data)
        if content_type:
            path.with_name(path.name + ".content-type").write_text(content_type, encoding="utf-8")

        obj = StoredObject(bucket=self.bucket, name=name, content_type=content_type, size=len(data))
        logger.info("Stored object %s/%s (%s bytes, %s)", self.bucket, name, len(data), content_type)

        for listener in list(self._listeners):
            listener(obj)
        return obj

    def download(self, name: str) -> bytes:
        path = self._object_path(name)
        if not path.is_file():
            raise FileNotFoundError(f"Object not found: {self.bucket}/{name}")
        return path.read_bytes()

    def content_type(self, name: str) -> Optional[str]:
        sidecar = self._object_path(name)
        sidecar = sidecar.with_name(sidecar.name + ".content-type")
        if sidecar.is_file():
            return sidecar.read_text(encoding="utf-8").strip() or None
        return None

    def public_url(self, name: str, bucket: Optional[str] = None) -> str:
        return f"{self.public_base_url}/{bucket or self.bucket}/{name}"
