import re
from hashlib import sha256

ALGORITHM = "sha256"

_DIGEST_PATTERN = re.compile(r"^(?P<algorithm>[a-z0-9]+):(?P<hex>[a-f0-9]{64})$")


class Digest(str):
    """Content identity of a blob or manifest: ``<algorithm>:<hex>``

    ref: https://github.com/opencontainers/image-spec/blob/main/descriptor.md#digests
    """

    __slots__ = ()

    @property
    def algorithm(self) -> str:
        return self.split(":", 1)[0]

    @property
    def hex(self) -> str:
        return self.split(":", 1)[1]

    @classmethod
    def parse(cls, value: str) -> "Digest":
        """Validate a digest string received from elsewhere"""
        if _DIGEST_PATTERN.match(value) is None:
            raise ValueError(f"Invalid digest: {value!r}")
        return cls(value)


def digest(data: bytes) -> Digest:
    """Return the sha256 digest of `data`"""
    return Digest(f"{ALGORITHM}:{sha256(data).hexdigest()}")
