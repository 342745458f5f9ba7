from __future__ import annotations

from functools import cached_property
from typing import TYPE_CHECKING, Sequence

from pydantic import BaseModel

from scratchbuild.oci.descriptor import Descriptor

if TYPE_CHECKING:
    from scratchbuild.oci.client import Repository

MANIFEST = "application/vnd.docker.distribution.manifest.v2+json"


class Manifest(BaseModel):
    """
    ref: https://github.com/distribution/distribution/blob/main/docs/content/spec/manifest-v2-2.md
    """

    config: Descriptor
    layers: list[Descriptor] = []

    mediaType: str = MANIFEST
    schemaVersion: int = 2

    @cached_property
    def descriptor(self) -> Descriptor:
        """The serialized manifest, computed once so every tag gets the same bytes"""
        data = self.model_dump_json(exclude_none=True).encode("utf-8")
        return Descriptor.from_bytes(data, media_type=self.mediaType)

    def publish(self, repository: Repository, tags: Sequence[str]):
        descriptor = self.descriptor
        repository.push_manifest(
            data=descriptor.data, media_type=descriptor.mediaType, tags=tags
        )
