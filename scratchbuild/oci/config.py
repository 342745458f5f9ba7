"""Image configuration document

ref: https://github.com/moby/moby/blob/master/image/spec/spec.md
"""
from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from scratchbuild.oci.descriptor import Descriptor

IMAGE_CONFIG = "application/vnd.docker.container.image.v1+json"

ARCHITECTURE = "amd64"
OS = "linux"


class ImageConfig(BaseModel):
    """Execution defaults for a container running the image"""

    model_config = ConfigDict(populate_by_name=True)

    user: str | None = Field(default=None, alias="User")
    exposed_ports: set[str] | None = Field(default=None, alias="ExposedPorts")
    env: list[str] | None = Field(default=None, alias="Env")
    entrypoint: list[str] | None = Field(default=None, alias="Entrypoint")
    cmd: list[str] | None = Field(default=None, alias="Cmd")
    volumes: set[str] | None = Field(default=None, alias="Volumes")
    working_dir: str | None = Field(default=None, alias="WorkingDir")
    labels: dict[str, str] | None = Field(default=None, alias="Labels")
    stop_signal: str | None = Field(default=None, alias="StopSignal")

    @field_serializer("exposed_ports", "volumes")
    def _serialize_set(self, value: set[str] | None):
        # Sets are encoded as objects with empty values: {"80/tcp": {}}
        if value is None:
            return None
        return {item: {} for item in sorted(value)}


class RootFS(BaseModel):
    type: str = "layers"
    # Digests of the uncompressed layers, bottom-most first
    diff_ids: list[str] = []


class History(BaseModel):
    created: datetime | None = None
    created_by: str | None = None
    author: str | None = None
    comment: str | None = None
    empty_layer: bool | None = None


class Image(BaseModel):
    created: datetime | None = None
    author: str | None = None
    architecture: str = ARCHITECTURE
    os: str = OS
    config: ImageConfig = ImageConfig()
    rootfs: RootFS
    history: list[History] | None = None

    def dump(self) -> bytes:
        return self.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def build_image_config(
    config: ImageConfig,
    diff_id: str,
    created: datetime | None = None,
    architecture: str = ARCHITECTURE,
    os: str = OS,
    history: list[History] | None = None,
) -> Descriptor:
    """Serialize the image document for a single layer image

    `diff_id` must be the digest of the uncompressed layer, even when the
    stored blob is compressed.
    """
    if created is None:
        created = datetime.now(timezone.utc)
    image = Image(
        created=created,
        architecture=architecture,
        os=os,
        config=config,
        rootfs=RootFS(diff_ids=[diff_id]),
        history=history,
    )
    return Descriptor.from_bytes(image.dump(), media_type=IMAGE_CONFIG)
