"""
GPU device identity model.

A device is discovered at the start of every sweep and is never persisted:
index, minor number, UUID and name may all change across driver reloads.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class GPUDevice:
    """
    Identity of one GPU as seen during a single sweep.

    The identity fields form the label set of every per-device sample,
    so a device is only usable once all of them were resolved.
    """

    index: int
    minor_number: int
    uuid: str
    name: str

    @property
    def labels(self) -> tuple[str, str, str]:
        """Label values for (minor_number, uuid, name)."""
        return (str(self.minor_number), self.uuid, self.name)

    @property
    def info_labels(self) -> tuple[str, str, str, str]:
        """Label values for the device info metric (index, minor_number, uuid, name)."""
        return (str(self.index), str(self.minor_number), self.uuid, self.name)

    def __str__(self) -> str:
        return f"GPU {self.index} ({self.name}, minor={self.minor_number}, {self.uuid})"
