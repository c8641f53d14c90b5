"""Device id to descriptor and live session mapping."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from types import MappingProxyType

from scalebridge.core.errors import DeviceDisabledError, DeviceNotFoundError
from scalebridge.core.model import DeviceDescriptor
from scalebridge.core.session import DeviceSession

LOGGER = logging.getLogger(__name__)

SessionFactory = Callable[[DeviceDescriptor], DeviceSession]


@dataclass(frozen=True)
class ReloadSummary:
    added: tuple[str, ...]
    updated: tuple[str, ...]
    removed: tuple[str, ...]

    @property
    def changed(self) -> bool:
        return bool(self.added or self.updated or self.removed)


class DeviceRegistry:
    """Read-mostly device map.

    The descriptor map is an immutable snapshot replaced as a whole on every
    mutation, so lookups never take the lock. The lock only serializes
    writers and lazy session creation.
    """

    def __init__(
        self,
        descriptors: Iterable[DeviceDescriptor] = (),
        *,
        session_factory: SessionFactory | None = None,
    ) -> None:
        self._session_factory = session_factory or DeviceSession
        self._devices: Mapping[str, DeviceDescriptor] = MappingProxyType(
            {descriptor.id: descriptor for descriptor in descriptors}
        )
        self._sessions: dict[str, DeviceSession] = {}
        self._lock = threading.Lock()

    def list(self) -> list[DeviceDescriptor]:
        return sorted(self._devices.values(), key=lambda d: d.id)

    def lookup(self, device_id: str) -> DeviceDescriptor | None:
        return self._devices.get(device_id)

    def sessions(self) -> dict[str, DeviceSession]:
        with self._lock:
            return dict(self._sessions)

    def executable_descriptor(self, device_id: str) -> DeviceDescriptor:
        """Return the descriptor if the device exists and is enabled, without touching sessions."""
        return self._check_executable(self._devices, device_id)

    def lookup_for_execution(self, device_id: str) -> tuple[DeviceDescriptor, DeviceSession]:
        descriptor = self._check_executable(self._devices, device_id)
        session = self._sessions.get(device_id)
        if session is not None and session.descriptor == descriptor and not session.closed:
            return descriptor, session

        with self._lock:
            descriptor = self._check_executable(self._devices, device_id)
            session = self._sessions.get(device_id)
            if session is None or session.descriptor != descriptor or session.closed:
                session = self._session_factory(descriptor)
                self._sessions[device_id] = session
                LOGGER.debug("Created session for device %s", device_id)
            return descriptor, session

    def upsert(self, descriptor: DeviceDescriptor) -> ReloadSummary:
        devices = dict(self._devices)
        devices[descriptor.id] = descriptor
        return self.reload(devices.values())

    def remove(self, device_id: str) -> ReloadSummary:
        if device_id not in self._devices:
            raise DeviceNotFoundError(f"Device '{device_id}' is not configured")
        return self.reload(d for d in self._devices.values() if d.id != device_id)

    def reload(self, descriptors: Iterable[DeviceDescriptor]) -> ReloadSummary:
        """Swap in a new descriptor set and retire sessions whose device changed."""
        new_devices = {descriptor.id: descriptor for descriptor in descriptors}
        retired: list[DeviceSession] = []

        with self._lock:
            old_devices = self._devices
            for device_id, session in list(self._sessions.items()):
                replacement = new_devices.get(device_id)
                if replacement is None or replacement != session.descriptor or not replacement.enabled:
                    retired.append(self._sessions.pop(device_id))
            self._devices = MappingProxyType(new_devices)

        # Retired sessions finish their admitted commands before closing.
        for session in retired:
            session.close()

        summary = ReloadSummary(
            added=tuple(sorted(set(new_devices) - set(old_devices))),
            updated=tuple(
                sorted(
                    device_id
                    for device_id in set(new_devices) & set(old_devices)
                    if new_devices[device_id] != old_devices[device_id]
                )
            ),
            removed=tuple(sorted(set(old_devices) - set(new_devices))),
        )
        if summary.changed:
            LOGGER.info(
                "Device registry reloaded: added=%s updated=%s removed=%s",
                list(summary.added),
                list(summary.updated),
                list(summary.removed),
            )
        return summary

    def close(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()

    @staticmethod
    def _check_executable(devices: Mapping[str, DeviceDescriptor], device_id: str) -> DeviceDescriptor:
        descriptor = devices.get(device_id)
        if descriptor is None:
            raise DeviceNotFoundError(f"Device '{device_id}' is not configured")
        if not descriptor.enabled:
            raise DeviceDisabledError(f"Device '{device_id}' is disabled")
        return descriptor
