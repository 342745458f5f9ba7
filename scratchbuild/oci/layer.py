import gzip

from pydantic import Field

from scratchbuild.oci.descriptor import Descriptor
from scratchbuild.oci.digest import digest

LAYER = "application/vnd.docker.image.rootfs.diff.tar.gzip"
UNCOMPRESSED_LAYER = "application/vnd.docker.image.rootfs.diff.tar"


class Layer(Descriptor):
    diff_id: str = Field(exclude=True)

    @classmethod
    def from_tar(cls, tar: bytes, compress: bool = True) -> "Layer":
        """Create a layer from an uncompressed tar stream

        The diff ID is always the digest of `tar`, whatever is stored.
        """
        diff_id = digest(tar)
        if not compress:
            return cls(
                mediaType=UNCOMPRESSED_LAYER,
                digest=diff_id,
                size=len(tar),
                data=tar,
                diff_id=diff_id,
            )
        # Set mtime to 0 to ensure the digest does not change if the layer does not change
        zipped = gzip.compress(tar, mtime=0)
        return cls(
            mediaType=LAYER,
            digest=digest(zipped),
            size=len(zipped),
            data=zipped,
            diff_id=diff_id,
        )
