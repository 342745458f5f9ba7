from scratchbuild import oci

__all__ = ["oci"]
