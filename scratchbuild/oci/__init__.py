"""Registry V2 client for pushing single layer images

This module builds a scratch image from one tar layer and pushes it to a
registry.
"""
import logging
from datetime import datetime
from typing import Sequence

from scratchbuild.oci.auth import BearerAuth, Credentials, StaticToken
from scratchbuild.oci.client import Client, Repository
from scratchbuild.oci.config import ImageConfig, build_image_config
from scratchbuild.oci.digest import Digest, digest
from scratchbuild.oci.errors import BuildError, RegistryError
from scratchbuild.oci.layer import Layer
from scratchbuild.oci.manifest import Manifest

logger = logging.getLogger(__name__)

__all__ = [
    "BearerAuth",
    "BuildError",
    "Client",
    "Credentials",
    "Digest",
    "ImageConfig",
    "Layer",
    "Manifest",
    "RegistryError",
    "Repository",
    "StaticToken",
    "build_image",
    "digest",
]


def build_image(
    repository: Repository,
    image_config: ImageConfig,
    layer: bytes,
    tags: Sequence[str],
    compress: bool = True,
    created: datetime | None = None,
) -> Manifest:
    """Build a single layer image and push it to `repository`

    :param repository: The repository to push to.
    :param image_config: Execution defaults for the image.
    :param layer: Uncompressed tar stream of the image filesystem.
    :param tags: Tags to publish the manifest under, at least one.
    :param compress: Store the layer gzip compressed.
    :param created: Creation time recorded in the image, defaults to now.

    Blobs pushed before a failing stage are left on the registry.
    """
    if isinstance(tags, str):
        raise TypeError("tags must be a sequence of tags, not a single string")
    if not tags:
        raise ValueError("at least one tag is required")

    image_layer = Layer.from_tar(layer, compress=compress)
    logger.info("Layer digest %s (diff ID %s)", image_layer.digest, image_layer.diff_id)

    try:
        image_layer.push(repository)
    except RegistryError as e:
        raise BuildError("layer upload", "failed to send image layer") from e

    config = build_image_config(image_config, diff_id=image_layer.diff_id, created=created)
    logger.info("Image config digest %s", config.digest)

    try:
        config.push(repository)
    except RegistryError as e:
        raise BuildError("config upload", "failed to send image config") from e

    manifest = Manifest(config=config, layers=[image_layer])
    logger.info("Manifest digest %s", manifest.descriptor.digest)
    try:
        manifest.publish(repository, tags=tags)
    except RegistryError as e:
        raise BuildError("manifest publish", "failed to send manifest") from e

    logger.info("Pushed %r with tags %s", repository, ", ".join(tags))
    return manifest
