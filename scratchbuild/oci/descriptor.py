from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from scratchbuild.oci.digest import Digest, digest

if TYPE_CHECKING:
    from scratchbuild.oci.client import Repository


class Descriptor(BaseModel):
    """
    ref: https://github.com/distribution/distribution/blob/main/docs/content/spec/manifest-v2-2.md
    """

    mediaType: str
    size: int
    digest: str
    urls: list[str] | None = None
    data: bytes | None = Field(exclude=True, default=None, repr=False)

    @classmethod
    def from_bytes(cls, data: bytes, media_type: str) -> "Descriptor":
        return cls(mediaType=media_type, size=len(data), digest=digest(data), data=data)

    def push(self, repository: Repository) -> bool:
        if self.data is None:
            raise ValueError(f"Missing {self.__class__.__name__}.data")
        return repository.push_blob(blob=self.data, digest=Digest.parse(self.digest))
