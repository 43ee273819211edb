"""아티팩트(이미지 바이트) 저장소.

논리 경로는 "<namespace>/<name>" 형식이다. (예: "original/ab12.png", "resized/ab12.jpg")
저장소 구현은 ArtifactStore 프로토콜만 만족하면 교체할 수 있다.
"""

import os
import tempfile
from pathlib import Path
from typing import Protocol

from loguru import logger

from core.exceptions import ArtifactNotFound, StorageError

NAMESPACES = ("original", "resized", "thumbnails", "watermarked")


class ArtifactStore(Protocol):
    def save(self, namespace: str, name: str, data: bytes) -> str: ...

    def load(self, path: str) -> bytes: ...

    def delete(self, path: str) -> None: ...


class LocalFileStorage:
    """로컬 파일시스템 기반 저장소.

    쓰기는 임시 파일에 먼저 기록한 뒤 os.replace로 교체하므로
    중간에 실패해도 반쯤 쓰인 파일이 남지 않는다.
    """

    def __init__(self, root: str | os.PathLike):
        self.root = Path(root).resolve()
        self._log = logger.bind(component="storage")

    def _resolve(self, path: str) -> Path:
        full = (self.root / path).resolve()
        if not full.is_relative_to(self.root) or full == self.root:
            raise StorageError(f"저장소 밖의 경로입니다: {path}")
        return full

    def save(self, namespace: str, name: str, data: bytes) -> str:
        if namespace not in NAMESPACES:
            raise StorageError(f"알 수 없는 네임스페이스: {namespace}")

        path = f"{namespace}/{Path(name).name}"
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, target)
            except BaseException:
                if os.path.exists(tmp):
                    os.remove(tmp)
                raise
        except OSError as e:
            raise StorageError(f"파일 저장 실패 ({path}): {e}") from e

        self._log.debug(f"saved {path} ({len(data)} bytes)")
        return path

    def load(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return target.read_bytes()
        except FileNotFoundError as e:
            raise ArtifactNotFound(f"파일이 없습니다: {path}") from e
        except OSError as e:
            raise StorageError(f"파일 읽기 실패 ({path}): {e}") from e

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError as e:
            raise ArtifactNotFound(f"파일이 없습니다: {path}") from e
        except OSError as e:
            raise StorageError(f"파일 삭제 실패 ({path}): {e}") from e
        self._log.debug(f"deleted {path}")
