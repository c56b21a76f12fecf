"""File operations inside a sandbox."""

from pathlib import Path
from typing import List, Optional, Union

import structlog

from ..config import ConnectionConfig
from ..core.api_client import SandboxApiClient
from ..models.files import FileInfo

logger = structlog.get_logger(__name__)


def normalize_path(path: str) -> str:
    """Strip the leading slash; the API expects ``dir/file`` not ``/dir/file``."""
    return path[1:] if path.startswith("/") else path


class FileSystem:
    """File system of one sandbox.

    Obtained from ``Sandbox.fs`` or :meth:`FileSystem.for_sandbox`.
    """

    def __init__(self, api: SandboxApiClient, sandbox_id: str):
        self._api = api
        self.sandbox_id = sandbox_id

    @classmethod
    def for_sandbox(
        cls, sandbox_id: str, connection: Optional[ConnectionConfig] = None
    ) -> "FileSystem":
        return cls(SandboxApiClient.from_connection(connection), sandbox_id)

    async def list_files(self, dir_path: str) -> List[FileInfo]:
        items = await self._api.list_content(self.sandbox_id, normalize_path(dir_path))
        return [FileInfo.from_item(item) for item in items]

    async def create_folder(self, dir_path: str) -> None:
        await self._api.create_directory(self.sandbox_id, normalize_path(dir_path))

    async def delete_file(self, file_path: str) -> None:
        await self._api.delete_content(self.sandbox_id, normalize_path(file_path))

    async def download_file(
        self, remote_path: str, local_path: Optional[Union[str, Path]] = None
    ) -> bytes:
        """
        Download a file from the sandbox.

        Args:
            remote_path: Path of the file in the sandbox
            local_path: Optional local path the content is also written to

        Returns:
            File content
        """
        content = await self._api.download_content(
            self.sandbox_id, normalize_path(remote_path)
        )
        if local_path is not None:
            Path(local_path).write_bytes(content)
        logger.debug(
            "File downloaded",
            sandbox_id=self.sandbox_id,
            path=remote_path,
            size=len(content),
        )
        return content

    async def upload_file(self, source: Union[bytes, str, Path], remote_path: str) -> None:
        """Upload raw bytes, or the content of a local file, to ``remote_path``."""
        if isinstance(source, (bytes, bytearray)):
            data = bytes(source)
        else:
            data = Path(source).read_bytes()

        await self._api.upload_content(self.sandbox_id, normalize_path(remote_path), data)
        logger.debug(
            "File uploaded",
            sandbox_id=self.sandbox_id,
            path=remote_path,
            size=len(data),
        )
