"""
Naming Convention Module

Parses image folder names and session host record names.
"""

from typing import Dict, Any

from .errors import MalformedImageNameError


NAMING_PLACEHOLDERS = frozenset({
    'env',
    'folder_name',
    'segment',
    'host_pool',
    'subscription_id',
    'resource_group',
})


class ImageNameConvention:
    """Dot-separated image folder naming convention."""

    def __init__(self, segment_index: int = 3, min_segments: int = 4):
        """
        Initialize the convention.

        Args:
            segment_index: Position of the segment used for VM and desktop names
            min_segments: Minimum number of dot-separated segments a folder needs
        """
        self.segment_index = segment_index
        self.min_segments = max(min_segments, segment_index + 1)

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'ImageNameConvention':
        naming = config.get('naming', {})
        return cls(
            segment_index=naming.get('segment_index', 3),
            min_segments=naming.get('min_segments', 4),
        )

    def segment(self, folder_name: str) -> str:
        """
        Extract the naming segment from an image folder name.

        Args:
            folder_name: Image folder name, e.g. 'build.2024.05.17.03'

        Returns:
            The segment at the configured index ('17' for the example above)

        Raises:
            MalformedImageNameError: If the folder has too few segments or the
                selected segment is empty
        """
        parts = folder_name.split('.')
        if len(parts) < self.min_segments or not parts[self.segment_index]:
            raise MalformedImageNameError(folder_name, len(parts), self.min_segments)
        return parts[self.segment_index]

    @staticmethod
    def session_host_vm_name(record_name: str) -> str:
        """
        Derive the bare VM name from a pool-qualified session host name.

        'pool/vm01.domain.local' -> 'vm01'
        """
        bare = record_name.rsplit('/', 1)[-1]
        return bare.split('.', 1)[0]
