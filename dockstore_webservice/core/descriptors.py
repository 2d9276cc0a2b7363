"""Descriptor type and path validation shared by registration paths."""

from ..errors import InvalidDescriptorPathError, InvalidDescriptorTypeError
from .enums import DescriptorType

NEXTFLOW_CONFIG_FILE = "nextflow.config"


def parse_descriptor_type(value: str) -> DescriptorType:
    """Parse a user-supplied descriptor type or raise ``InvalidDescriptorTypeError``."""
    descriptor_type = DescriptorType.parse(value)
    if descriptor_type is None:
        raise InvalidDescriptorTypeError(
            f"{value} is not a valid descriptor type. "
            f"Valid types are: {', '.join(t.value for t in DescriptorType)}."
        )
    return descriptor_type


def validate_descriptor_path(path: str, descriptor_type: DescriptorType) -> None:
    """Nextflow entries point at nextflow.config; others end in their language suffix."""
    if not path or not path.startswith("/"):
        raise InvalidDescriptorPathError(f"Descriptor path {path!r} must be absolute.")
    if descriptor_type == DescriptorType.NEXTFLOW:
        if not path.endswith(NEXTFLOW_CONFIG_FILE):
            raise InvalidDescriptorPathError(
                f"Please ensure that the given workflow path '{path}' is of type "
                f"{descriptor_type.value} and ends in {NEXTFLOW_CONFIG_FILE}."
            )
    elif not path.lower().endswith(f".{descriptor_type.value}"):
        raise InvalidDescriptorPathError(
            f"Please ensure that the given workflow path '{path}' is of type "
            f"{descriptor_type.value} and has the file extension .{descriptor_type.value}."
        )
