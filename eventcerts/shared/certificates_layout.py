from __future__ import annotations

import re
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from typing import Any, Mapping

from .errors import ConfigurationError

FONT_WEIGHTS = ("normal", "bold")
DEFAULT_FONT_FAMILY = "Libre Baskerville, serif"
DEFAULT_DATE_FORMAT = "MMMM D, YYYY"
DEFAULT_PARTICIPATION_TEMPLATE = (
    "For his/her active participation during the {EVENT_NAME} "
    "held on {EVENT_DATE} at {VENUE}"
)

_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")
_PREFIX_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")
# Columns that travel with a stored layout row but are not layout fields.
_RECORD_KEYS = frozenset({"id", "event_id", "created_at", "updated_at", "created_by"})


def _kind(kind: str, **extra: Any) -> dict:
    return {"kind": kind, **extra}


@dataclass(frozen=True)
class Position:
    x: float = field(default=50.0, metadata=_kind("percent"))
    y: float = field(default=50.0, metadata=_kind("percent"))


@dataclass(frozen=True)
class Size:
    width: float = field(default=120.0, metadata=_kind("size"))
    height: float = field(default=120.0, metadata=_kind("size"))


@dataclass(frozen=True)
class TextStyle:
    font_size: float = field(default=16.0, metadata=_kind("size"))
    color: str = field(default="#000000", metadata=_kind("color"))
    position: Position = field(default_factory=Position)
    font_family: str = field(default=DEFAULT_FONT_FAMILY, metadata=_kind("text"))
    font_weight: str = field(default="normal", metadata=_kind("weight"))

    @property
    def bold(self) -> bool:
        return self.font_weight == "bold"


@dataclass(frozen=True)
class TextBlockConfig(TextStyle):
    text: str = field(default="", metadata=_kind("text"))


@dataclass(frozen=True)
class HeaderConfig:
    republic: TextBlockConfig = field(default_factory=TextBlockConfig)
    university: TextBlockConfig = field(default_factory=TextBlockConfig)
    location: TextBlockConfig = field(default_factory=TextBlockConfig)

    def lines(self) -> tuple[TextBlockConfig, ...]:
        return (self.republic, self.university, self.location)


@dataclass(frozen=True)
class TitleConfig(TextStyle):
    text: str = field(default="CERTIFICATE", metadata=_kind("text"))
    subtitle: str = field(default="OF PARTICIPATION", metadata=_kind("text"))


@dataclass(frozen=True)
class SeparatorConfig:
    enabled: bool = field(default=True, metadata=_kind("flag"))
    color: str = field(default="#000000", metadata=_kind("color"))
    thickness: float = field(default=2.0, metadata=_kind("size"))
    start_x: float = field(default=20.0, metadata=_kind("percent"))
    end_x: float = field(default=80.0, metadata=_kind("percent"))
    offset: float = field(default=3.0, metadata=_kind("percent"))


@dataclass(frozen=True)
class ParticipationTextConfig(TextStyle):
    text_template: str = field(
        default=DEFAULT_PARTICIPATION_TEMPLATE, metadata=_kind("text")
    )
    line_height: float = field(default=1.5, metadata=_kind("size"))
    date_format: str = field(default=DEFAULT_DATE_FORMAT, metadata=_kind("text"))


@dataclass(frozen=True)
class LogoSpec:
    url: str = field(default="", metadata=_kind("link", required=True))
    size: Size = field(default_factory=Size)
    position: Position = field(default_factory=lambda: Position(15.0, 10.0))


@dataclass(frozen=True)
class LogoConfig:
    logos: tuple[LogoSpec, ...] = field(
        default=(), metadata=_kind("list", item=LogoSpec())
    )
    sponsor_logos: tuple[str, ...] = field(
        default=(), metadata=_kind("list", item_kind="link")
    )
    sponsor_logo_size: Size = field(default_factory=lambda: Size(80.0, 80.0))
    sponsor_logo_position: Position = field(default_factory=lambda: Position(90.0, 5.0))
    sponsor_logo_spacing: float = field(default=10.0, metadata=_kind("length"))


@dataclass(frozen=True)
class SignatureBlock:
    name: str = field(default="", metadata=_kind("text"))
    position: str = field(default="", metadata=_kind("text"))
    signature_image_url: str | None = field(default=None, metadata=_kind("url"))
    position_config: Position = field(default_factory=lambda: Position(50.0, 92.0))
    name_font_size: float = field(default=14.0, metadata=_kind("size"))
    position_font_size: float = field(default=12.0, metadata=_kind("size"))
    image_size: Size = field(default_factory=lambda: Size(300.0, 100.0))
    color: str = field(default="#000000", metadata=_kind("color"))
    font_family: str = field(default=DEFAULT_FONT_FAMILY, metadata=_kind("text"))


@dataclass(frozen=True)
class CertIdConfig(TextStyle):
    prefix: str | None = field(default=None, metadata=_kind("prefix"))


@dataclass(frozen=True)
class QrConfig:
    enabled: bool = field(default=True, metadata=_kind("flag"))
    size: float = field(default=60.0, metadata=_kind("size"))
    gap: float = field(default=15.0, metadata=_kind("length"))


@dataclass(frozen=True)
class LayoutConfig:
    width: float = field(default=2000.0, metadata=_kind("size"))
    height: float = field(default=1200.0, metadata=_kind("size"))
    background_color: str = field(default="#ffffff", metadata=_kind("color"))
    background_image_url: str | None = field(default=None, metadata=_kind("url"))
    border_color: str = field(default="#1e40af", metadata=_kind("color"))
    border_width: float = field(default=5.0, metadata=_kind("length"))
    header_config: HeaderConfig = field(default_factory=HeaderConfig)
    title_config: TitleConfig = field(default_factory=TitleConfig)
    is_given_to_config: TextBlockConfig = field(default_factory=TextBlockConfig)
    name_config: TextStyle = field(default_factory=TextStyle)
    separator_config: SeparatorConfig = field(default_factory=SeparatorConfig)
    participation_text_config: ParticipationTextConfig = field(
        default_factory=ParticipationTextConfig
    )
    logo_config: LogoConfig = field(default_factory=LogoConfig)
    signature_blocks: tuple[SignatureBlock, ...] = field(
        default=(), metadata=_kind("list", item=SignatureBlock())
    )
    cert_id_config: CertIdConfig = field(default_factory=CertIdConfig)
    qr_config: QrConfig = field(default_factory=QrConfig)


DEFAULT_LAYOUT = LayoutConfig(
    header_config=HeaderConfig(
        republic=TextBlockConfig(font_size=20.0, position=Position(50.0, 8.0)),
        university=TextBlockConfig(
            font_size=28.0, position=Position(50.0, 11.0), font_weight="bold"
        ),
        location=TextBlockConfig(font_size=20.0, position=Position(50.0, 14.0)),
    ),
    title_config=TitleConfig(
        font_size=56.0, position=Position(50.0, 28.0), font_weight="bold"
    ),
    is_given_to_config=TextBlockConfig(
        text="This certificate is proudly presented to",
        font_size=16.0,
        position=Position(50.0, 38.0),
    ),
    name_config=TextStyle(
        font_size=48.0,
        position=Position(50.0, 50.0),
        font_family="MonteCarlo, cursive",
        font_weight="bold",
    ),
    participation_text_config=ParticipationTextConfig(
        font_size=18.0, position=Position(50.0, 60.0)
    ),
    cert_id_config=CertIdConfig(font_size=14.0, position=Position(50.0, 95.0)),
)


def resolve_layout(partial: Mapping[str, Any] | None) -> LayoutConfig:
    """Merge a partial layout onto ``DEFAULT_LAYOUT``.

    Nested objects merge field by field; lists replace the default list, with
    each item merged onto that list's item defaults. ``None`` values count as
    absent. Malformed values raise :class:`ConfigurationError`.
    """
    return _merge(DEFAULT_LAYOUT, partial, "")


def layout_to_dict(layout: LayoutConfig) -> dict:
    data = asdict(layout)
    data["signature_blocks"] = list(data["signature_blocks"])
    data["logo_config"]["logos"] = list(data["logo_config"]["logos"])
    data["logo_config"]["sponsor_logos"] = list(data["logo_config"]["sponsor_logos"])
    return data


def _join(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _merge(base, partial, path: str):
    if partial is None:
        return base
    if not isinstance(partial, Mapping):
        raise ConfigurationError(f"{path or 'layout'}: expected an object")
    known = {f.name: f for f in fields(base)}
    updates: dict[str, Any] = {}
    for key, value in partial.items():
        if not path and key in _RECORD_KEYS:
            continue
        declared = known.get(key)
        if declared is None:
            raise ConfigurationError(f"{_join(path, key)}: unknown field")
        if value is None:
            continue
        updates[key] = _merge_value(
            getattr(base, key), value, declared.metadata, _join(path, key)
        )
    merged = replace(base, **updates) if updates else base
    for declared in fields(merged):
        if declared.metadata.get("required") and not getattr(merged, declared.name):
            raise ConfigurationError(f"{_join(path, declared.name)}: required")
    return merged


def _merge_value(current, value, meta: Mapping[str, Any], path: str):
    if is_dataclass(current):
        return _merge(current, value, path)
    kind = meta.get("kind")
    if kind == "list":
        if not isinstance(value, (list, tuple)):
            raise ConfigurationError(f"{path}: expected a list")
        item = meta.get("item")
        if item is not None:
            return tuple(
                _merge(item, entry, f"{path}[{index}]")
                for index, entry in enumerate(value)
            )
        return tuple(
            _check(meta["item_kind"], entry, f"{path}[{index}]")
            for index, entry in enumerate(value)
        )
    return _check(kind, value, path)


def _number(value, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigurationError(f"{path}: expected a number, got {value!r}")
    return float(value)


def _check(kind: str | None, value, path: str):
    if kind == "percent":
        number = _number(value, path)
        if not 0.0 <= number <= 100.0:
            raise ConfigurationError(f"{path}: {number} is outside 0-100")
        return number
    if kind == "size":
        number = _number(value, path)
        if number <= 0:
            raise ConfigurationError(f"{path}: must be positive")
        return number
    if kind == "length":
        number = _number(value, path)
        if number < 0:
            raise ConfigurationError(f"{path}: must not be negative")
        return number
    if kind == "flag":
        if not isinstance(value, bool):
            raise ConfigurationError(f"{path}: expected true or false")
        return value
    if not isinstance(value, str):
        raise ConfigurationError(f"{path}: expected a string, got {value!r}")
    if kind == "color":
        if not _COLOR_RE.match(value):
            raise ConfigurationError(f"{path}: {value!r} is not a #RRGGBB color")
        return value
    if kind == "weight":
        weight = value.lower()
        if weight not in FONT_WEIGHTS:
            raise ConfigurationError(f"{path}: font weight must be normal or bold")
        return weight
    if kind == "url":
        return value.strip() or None
    if kind == "link":
        if not value.strip():
            raise ConfigurationError(f"{path}: empty URL")
        return value.strip()
    if kind == "prefix":
        if not _PREFIX_RE.match(value):
            raise ConfigurationError(f"{path}: {value!r} is not a valid prefix")
        return value
    return value
