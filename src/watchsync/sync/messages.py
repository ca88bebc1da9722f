"""Message contract exchanged between viewers and the coordinator.

Messages travel as ``{"type": ..., "data": {...}}`` envelopes whose fields use
the camelCase names the activity client sends. The coordinator only ever sees
the dataclasses. Each one has a pydantic model describing its "data" object,
which validates inbound payloads and renders outbound ones; transports use
the codec at the bottom of this module.
"""

import json
from dataclasses import asdict, dataclass
from typing import Annotated, Any, ClassVar, Mapping

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    StrictBool,
    StrictStr,
    ValidationError,
)

from watchsync.sync.models import NetworkQuality, PlaybackState, UserStatus


class MessageDecodeError(ValueError):
    """Raised when a payload does not match the message contract."""

    code = "BAD_MESSAGE"


@dataclass(frozen=True)
class SyncRequest:
    requester_id: str
    timestamp: float | None = None


@dataclass(frozen=True)
class SyncResponse:
    success: bool
    host_id: str | None
    playback_state: PlaybackState | None
    timestamp: float


@dataclass(frozen=True)
class HostTransfer:
    previous_host_id: str
    new_host_id: str


@dataclass(frozen=True)
class NetworkQualityUpdate:
    user_id: str
    quality: NetworkQuality
    timestamp: float | None = None


@dataclass(frozen=True)
class UserJoin:
    user_id: str
    username: str


@dataclass(frozen=True)
class UserLeave:
    user_id: str


@dataclass(frozen=True)
class Heartbeat:
    user_id: str


@dataclass(frozen=True)
class StatusChange:
    user_id: str
    status: UserStatus


@dataclass(frozen=True)
class PlaybackReport:
    """A viewer's own playback position at a wall-clock instant."""

    user_id: str
    observed_time: float
    timestamp: float


@dataclass(frozen=True)
class ErrorMessage:
    code: str
    message: str


Message = (
    SyncRequest
    | SyncResponse
    | HostTransfer
    | NetworkQualityUpdate
    | UserJoin
    | UserLeave
    | Heartbeat
    | StatusChange
    | PlaybackReport
    | PlaybackState
    | ErrorMessage
)


# ============== Wire models ==============


def _coerce_id(value: Any) -> Any:
    # Discord snowflakes sometimes arrive as numbers
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


def _require_number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError("must be a number")
    return float(value)


Id = Annotated[StrictStr, BeforeValidator(_coerce_id)]
Number = Annotated[float, BeforeValidator(_require_number)]


class _WireModel(BaseModel):
    """camelCase view of one message dataclass."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    message_cls: ClassVar[type]

    @classmethod
    def from_message(cls, message: Message) -> "_WireModel":
        return cls.model_validate(asdict(message))

    def to_message(self) -> Message:
        values = {}
        for name in type(self).model_fields:
            value = getattr(self, name)
            if isinstance(value, _WireModel):
                value = value.to_message()
            values[name] = value
        return self.message_cls(**values)


class _SyncRequestData(_WireModel):
    message_cls: ClassVar[type] = SyncRequest

    requester_id: Id = Field(..., alias="requesterId")
    timestamp: Number | None = None


class _PlaybackSyncData(_WireModel):
    message_cls: ClassVar[type] = PlaybackState

    is_playing: StrictBool = Field(..., alias="isPlaying")
    current_time: Number = Field(..., alias="currentTime", ge=0)
    buffering: StrictBool = False
    seeking: StrictBool = False
    timestamp: Number
    host_id: Id = Field(..., alias="hostId")


class _SyncResponseData(_WireModel):
    message_cls: ClassVar[type] = SyncResponse

    success: StrictBool
    host_id: Id | None = Field(default=None, alias="hostId")
    playback_state: _PlaybackSyncData | None = Field(default=None, alias="playbackState")
    timestamp: Number


class _HostTransferData(_WireModel):
    message_cls: ClassVar[type] = HostTransfer

    previous_host_id: Id = Field(..., alias="previousHostId")
    new_host_id: Id = Field(..., alias="newHostId")


class _NetworkQualityData(_WireModel):
    message_cls: ClassVar[type] = NetworkQualityUpdate

    user_id: Id = Field(..., alias="userId")
    quality: NetworkQuality
    timestamp: Number | None = None


class _UserJoinData(_WireModel):
    message_cls: ClassVar[type] = UserJoin

    user_id: Id = Field(..., alias="userId")
    username: Id


class _UserLeaveData(_WireModel):
    message_cls: ClassVar[type] = UserLeave

    user_id: Id = Field(..., alias="userId")


class _HeartbeatData(_WireModel):
    message_cls: ClassVar[type] = Heartbeat

    user_id: Id = Field(..., alias="userId")


class _StatusChangeData(_WireModel):
    message_cls: ClassVar[type] = StatusChange

    user_id: Id = Field(..., alias="userId")
    status: UserStatus


class _PlaybackReportData(_WireModel):
    message_cls: ClassVar[type] = PlaybackReport

    user_id: Id = Field(..., alias="userId")
    observed_time: Number = Field(..., alias="observedTime")
    timestamp: Number


class _ErrorData(_WireModel):
    message_cls: ClassVar[type] = ErrorMessage

    code: StrictStr = Field(..., alias="error")
    message: StrictStr


# Wire type name -> model of its "data" object
_CODECS: dict[str, type[_WireModel]] = {
    "SYNC_REQUEST": _SyncRequestData,
    "SYNC_RESPONSE": _SyncResponseData,
    "HOST_TRANSFER": _HostTransferData,
    "NETWORK_QUALITY_UPDATE": _NetworkQualityData,
    "USER_JOIN": _UserJoinData,
    "USER_LEAVE": _UserLeaveData,
    "HEARTBEAT": _HeartbeatData,
    "STATUS_CHANGE": _StatusChangeData,
    "PLAYBACK_SYNC": _PlaybackSyncData,
    "PLAYBACK_REPORT": _PlaybackReportData,
    "ERROR": _ErrorData,
}

_TYPE_NAMES: dict[type, str] = {
    model.message_cls: name for name, model in _CODECS.items()
}


def _describe(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(part) for part in problem['loc']) or 'data'}: {problem['msg']}"
        for problem in error.errors()
    )


def message_type(message: Message) -> str:
    """Return the wire type name for a message instance."""
    try:
        return _TYPE_NAMES[type(message)]
    except KeyError:
        raise TypeError(f"{type(message).__name__} is not part of the message contract")


def encode_message(message: Message) -> dict[str, Any]:
    """Wrap a message in a ``{"type", "data"}`` envelope.

    Args:
        message: Any message dataclass (or a PlaybackState for PLAYBACK_SYNC).

    Returns:
        A JSON-serialisable dict.
    """
    name = message_type(message)
    data = _CODECS[name].from_message(message)
    return {"type": name, "data": data.model_dump(mode="json", by_alias=True)}


def decode_message(payload: Mapping[str, Any]) -> Message:
    """Parse a ``{"type", "data"}`` envelope into a message dataclass.

    Args:
        payload: Envelope as received from a transport.

    Returns:
        The decoded message.

    Raises:
        MessageDecodeError: If the envelope or its fields are malformed.
    """
    if not isinstance(payload, Mapping):
        raise MessageDecodeError("Message must be an object")

    name = payload.get("type")
    if name not in _CODECS:
        raise MessageDecodeError(f"Unknown message type {name!r}")

    data = payload.get("data")
    if not isinstance(data, Mapping):
        raise MessageDecodeError("Message data must be an object")

    try:
        model = _CODECS[name].model_validate(dict(data))
    except ValidationError as e:
        raise MessageDecodeError(f"Invalid {name} message: {_describe(e)}") from e
    return model.to_message()


def encode_json(message: Message) -> str:
    """Encode a message as JSON text."""
    return json.dumps(encode_message(message))


def decode_json(text: str | bytes) -> Message:
    """Decode JSON text into a message.

    Raises:
        MessageDecodeError: If the text is not valid JSON or not a valid message.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Invalid JSON: {e}")
    return decode_message(payload)
