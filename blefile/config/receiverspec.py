from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable

from blefile.link.ble import DEFAULT_CHAR_UUID, DEFAULT_SERVICE_UUID
from blefile.protocol.framing import (
    DEFAULT_MAX_BUFFER_BYTES,
    DEFAULT_NAME_PREFIX,
    DEFAULT_NAME_SUFFIX,
    END_SENTINEL,
    START_SENTINEL,
    FramingConfig,
)


def _require_keys(data: Dict[str, Any], keys: Iterable[str], context: str) -> None:
    missing = [key for key in keys if key not in data]
    if missing:
        joined = ", ".join(missing)
        raise ValueError(f"missing {context} keys: {joined}")


def _optional_int(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError(f"invalid int value: {value!r}")
    if isinstance(value, int):
        return int(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(f"invalid int value: {value!r}")
        return int(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in {"", "none", "null", "unlimited"}:
            return None
        return int(text, 0)
    raise ValueError(f"invalid int value: {value!r}")


def _byte_value(value: Any) -> int:
    parsed = _optional_int(value)
    if parsed is None:
        raise ValueError(f"invalid byte value: {value!r}")
    return parsed


@dataclass(frozen=True)
class LinkSpec:
    address: str | None = None
    service_uuid: str = DEFAULT_SERVICE_UUID
    char_uuid: str = DEFAULT_CHAR_UUID
    connect_timeout_s: float = 15.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LinkSpec":
        address = data.get("address")
        return cls(
            address=str(address) if address else None,
            service_uuid=str(data.get("service_uuid", DEFAULT_SERVICE_UUID)),
            char_uuid=str(data.get("char_uuid", DEFAULT_CHAR_UUID)),
            connect_timeout_s=float(data.get("connect_timeout_s", 15.0)),
        )


@dataclass(frozen=True)
class FramingSpec:
    start_sentinel: int = START_SENTINEL
    end_sentinel: int = END_SENTINEL
    max_buffer_bytes: int | None = DEFAULT_MAX_BUFFER_BYTES
    session_timeout_ms: int | None = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FramingSpec":
        return cls(
            start_sentinel=_byte_value(data.get("start_sentinel", START_SENTINEL)),
            end_sentinel=_byte_value(data.get("end_sentinel", END_SENTINEL)),
            max_buffer_bytes=_optional_int(
                data.get("max_buffer_bytes", DEFAULT_MAX_BUFFER_BYTES)
            ),
            session_timeout_ms=_optional_int(data.get("session_timeout_ms")),
        )

    def to_config(self) -> FramingConfig:
        return FramingConfig(
            start_sentinel=self.start_sentinel,
            end_sentinel=self.end_sentinel,
            max_buffer_bytes=self.max_buffer_bytes,
        )


@dataclass(frozen=True)
class StorageSpec:
    out_dir: str | None = None
    name_prefix: str = DEFAULT_NAME_PREFIX
    name_suffix: str = DEFAULT_NAME_SUFFIX

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageSpec":
        out_dir = data.get("out_dir")
        return cls(
            out_dir=str(out_dir) if out_dir else None,
            name_prefix=str(data.get("name_prefix", DEFAULT_NAME_PREFIX)),
            name_suffix=str(data.get("name_suffix", DEFAULT_NAME_SUFFIX)),
        )


@dataclass(frozen=True)
class LoggingSpec:
    out_dir: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LoggingSpec":
        _require_keys(data, ["out_dir"], "logging")
        return cls(out_dir=str(data["out_dir"]))


@dataclass(frozen=True)
class ReceiverSpec:
    receiver_id: str
    logging: LoggingSpec
    link: LinkSpec = field(default_factory=LinkSpec)
    framing: FramingSpec = field(default_factory=FramingSpec)
    storage: StorageSpec = field(default_factory=StorageSpec)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReceiverSpec":
        _require_keys(data, ["receiver_id", "logging"], "receiverspec")
        return cls(
            receiver_id=str(data["receiver_id"]),
            logging=LoggingSpec.from_dict(data["logging"]),
            link=LinkSpec.from_dict(data.get("link") or {}),
            framing=FramingSpec.from_dict(data.get("framing") or {}),
            storage=StorageSpec.from_dict(data.get("storage") or {}),
        )

    def validate(self) -> None:
        if not self.receiver_id:
            raise ValueError("receiver_id must be non-empty")
        if not self.link.service_uuid or not self.link.char_uuid:
            raise ValueError("link service_uuid and char_uuid must be non-empty")
        if self.link.connect_timeout_s <= 0:
            raise ValueError("link connect_timeout_s must be > 0")
        self.framing.to_config().validate()
        if self.framing.session_timeout_ms is not None and self.framing.session_timeout_ms <= 0:
            raise ValueError("framing session_timeout_ms must be > 0 (or null)")
        if "/" in self.storage.name_prefix or "\\" in self.storage.name_prefix:
            raise ValueError("storage name_prefix must not contain path separators")
        if "/" in self.storage.name_suffix or "\\" in self.storage.name_suffix:
            raise ValueError("storage name_suffix must not contain path separators")

    def as_dict(self) -> Dict[str, Any]:
        return {
            "receiver_id": self.receiver_id,
            "link": {
                "address": self.link.address,
                "service_uuid": self.link.service_uuid,
                "char_uuid": self.link.char_uuid,
                "connect_timeout_s": self.link.connect_timeout_s,
            },
            "framing": {
                "start_sentinel": self.framing.start_sentinel,
                "end_sentinel": self.framing.end_sentinel,
                "max_buffer_bytes": self.framing.max_buffer_bytes,
                "session_timeout_ms": self.framing.session_timeout_ms,
            },
            "storage": {
                "out_dir": self.storage.out_dir,
                "name_prefix": self.storage.name_prefix,
                "name_suffix": self.storage.name_suffix,
            },
            "logging": {"out_dir": self.logging.out_dir},
        }


def _load_json(path: Path) -> Dict[str, Any]:
    return json.loads(path.read_text(encoding="utf-8"))


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        import yaml
    except ImportError as exc:
        raise RuntimeError("PyYAML is required to load YAML receiver specs") from exc
    return yaml.safe_load(path.read_text(encoding="utf-8"))


def load_receiverspec(path: str | Path) -> ReceiverSpec:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    if path.suffix.lower() in {".yaml", ".yml"}:
        data = _load_yaml(path)
    else:
        data = _load_json(path)
    spec = ReceiverSpec.from_dict(data)
    spec.validate()
    return spec


def save_receiverspec(path: str | Path, spec: ReceiverSpec) -> None:
    path = Path(path)
    data = spec.as_dict()
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            import yaml
        except ImportError as exc:
            raise RuntimeError("PyYAML is required to write YAML receiver specs") from exc
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
