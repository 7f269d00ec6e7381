from __future__ import annotations

import asyncio
from typing import Any

from blefile.link.base import ChunkSourceBase, ConnectOutcome

DEFAULT_SERVICE_UUID = "0000ffe0-0000-1000-8000-00805f9b34fb"
DEFAULT_CHAR_UUID = "0000ffe1-0000-1000-8000-00805f9b34fb"


def _load_bleak() -> tuple[Any, Any, type[BaseException]]:
    try:
        from bleak import BleakClient, BleakScanner
        from bleak.exc import BleakError
    except ImportError as exc:
        raise RuntimeError(
            "bleak is required for BLE mode. Install with `pip install -e .[ble]`."
        ) from exc
    return BleakClient, BleakScanner, BleakError


class BleLink(ChunkSourceBase):
    """
    Notification-based chunk source on a single GATT characteristic.

    `connect()` resolves the device, service and characteristic and enables
    notifications; lookup failures come back as a ConnectOutcome rather than an
    exception. Each notification payload is delivered as one chunk. A peer-side
    disconnect ends the stream.
    """

    def __init__(
        self,
        address: str,
        service_uuid: str = DEFAULT_SERVICE_UUID,
        char_uuid: str = DEFAULT_CHAR_UUID,
        connect_timeout_s: float = 15.0,
    ) -> None:
        super().__init__()
        if not address:
            raise ValueError("address must be non-empty")
        self._client_cls, self._scanner_cls, self._bleak_error = _load_bleak()
        self._address = address
        self._service_uuid = service_uuid.lower()
        self._char_uuid = char_uuid.lower()
        self._connect_timeout_s = float(connect_timeout_s)
        self._client: Any = None
        self._char: Any = None
        self._closed: asyncio.Event | None = None
        self._close_task: asyncio.Task | None = None

    @property
    def address(self) -> str:
        return self._address

    @property
    def connected(self) -> bool:
        return self._client is not None and not self.ended

    async def connect(self) -> ConnectOutcome:
        self._closed = asyncio.Event()
        connect_errors = (self._bleak_error, asyncio.TimeoutError, OSError)
        try:
            device = await self._scanner_cls.find_device_by_address(
                self._address, timeout=self._connect_timeout_s
            )
        except connect_errors as exc:
            return ConnectOutcome("CONNECT_FAILED", f"scan failed: {exc}")
        if device is None:
            return ConnectOutcome("DEVICE_NOT_FOUND", f"no device with address {self._address}")

        client = self._client_cls(
            device,
            disconnected_callback=self._on_disconnected,
            timeout=self._connect_timeout_s,
        )
        try:
            await client.connect()
        except connect_errors as exc:
            return ConnectOutcome("CONNECT_FAILED", str(exc))

        service = client.services.get_service(self._service_uuid)
        if service is None:
            await self._drop(client)
            return ConnectOutcome("SERVICE_NOT_FOUND", f"service {self._service_uuid} not found")
        char = service.get_characteristic(self._char_uuid)
        if char is None:
            await self._drop(client)
            return ConnectOutcome(
                "CHARACTERISTIC_NOT_FOUND", f"characteristic {self._char_uuid} not found"
            )
        try:
            await client.start_notify(char, self._on_notify)
        except connect_errors as exc:
            await self._drop(client)
            return ConnectOutcome("CONNECT_FAILED", f"cannot enable notifications: {exc}")

        self._client = client
        self._char = char
        return ConnectOutcome("CONNECTED", getattr(device, "name", None) or self._address)

    async def _drop(self, client: Any) -> None:
        try:
            await client.disconnect()
        except (self._bleak_error, asyncio.TimeoutError, OSError):
            return None

    def _on_notify(self, sender: Any, data: bytearray) -> None:  # noqa: ARG002
        self._deliver(bytes(data))

    def _on_disconnected(self, client: Any) -> None:  # noqa: ARG002
        self._finish("peer disconnected")
        if self._closed is not None:
            self._closed.set()

    async def aclose(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            try:
                await client.stop_notify(self._char)
            except (self._bleak_error, asyncio.TimeoutError, OSError):
                pass
            await self._drop(client)
        self._finish("disconnected")
        if self._closed is not None:
            self._closed.set()

    def disconnect(self) -> None:
        if self._client is None:
            self._finish("disconnected")
            if self._closed is not None:
                self._closed.set()
            return
        if self._close_task is None:
            self._close_task = asyncio.get_running_loop().create_task(self.aclose())

    async def wait_closed(self) -> None:
        if self._closed is None:
            return
        await self._closed.wait()
        if self._close_task is not None:
            await self._close_task
