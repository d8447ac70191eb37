"""Quality level (rendition) descriptors and catalog validation."""

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional, Union

from abr.exceptions import InvalidLevelError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Level:
    """One quality rendition in the caller's catalog.

    Attributes:
        index: Position in the caller's catalog
        bitrate: Peak bitrate in bits/sec
        width: Frame width in pixels (0 if unknown)
        height: Frame height in pixels (0 if unknown)
        name: Optional display name (e.g. "720p")
    """

    index: int
    bitrate: float
    width: int = 0
    height: int = 0
    name: Optional[str] = None

    @property
    def label(self) -> str:
        """Human-readable label, e.g. "720p" or "2500 kbps"."""
        if self.name:
            return self.name
        if self.height:
            return f"{self.height}p"
        return f"{self.bitrate / 1000:.0f} kbps"

    @classmethod
    def from_mapping(cls, index: int, entry: Mapping[str, Any]) -> "Level":
        """Create Level from a catalog dict.

        Accepts "bitrate" or "bandwidth" as the bitrate key.

        Args:
            index: Position of the entry in the catalog
            entry: Dict with bitrate and optional width/height/name

        Returns:
            Validated Level

        Raises:
            InvalidLevelError: If the bitrate is missing, non-numeric,
                non-finite or negative
        """
        if not isinstance(entry, Mapping):
            raise InvalidLevelError(f"Level {index} is not a mapping: {entry!r}")

        bitrate = entry.get("bitrate", entry.get("bandwidth"))
        if isinstance(bitrate, bool) or not isinstance(bitrate, (int, float)):
            raise InvalidLevelError(f"Level {index} has no numeric bitrate: {bitrate!r}")
        if not math.isfinite(bitrate) or bitrate < 0:
            raise InvalidLevelError(f"Level {index} has invalid bitrate: {bitrate!r}")

        return cls(
            index=index,
            bitrate=float(bitrate),
            width=_as_int(entry.get("width")),
            height=_as_int(entry.get("height")),
            name=entry.get("name"),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(value)
    return 0


def _is_valid(level: Level) -> bool:
    bitrate = level.bitrate
    return (
        isinstance(bitrate, (int, float))
        and not isinstance(bitrate, bool)
        and math.isfinite(bitrate)
        and bitrate >= 0
    )


def sanitize_levels(levels: Iterable[Union[Level, Mapping[str, Any]]]) -> list[Level]:
    """Build a validated catalog, dropping malformed entries.

    Args:
        levels: Level objects or dicts, in catalog order

    Returns:
        Valid levels; each keeps its original catalog index
    """
    valid: list[Level] = []
    for index, entry in enumerate(levels):
        if isinstance(entry, Level):
            if _is_valid(entry):
                valid.append(entry)
            else:
                logger.debug(f"Dropping level {entry.index}: invalid bitrate")
            continue

        try:
            valid.append(Level.from_mapping(index, entry))
        except InvalidLevelError as e:
            logger.debug(f"Dropping malformed level: {e}")

    return valid


def is_sorted_by_bitrate(levels: Iterable[Level]) -> bool:
    """Check that levels are ascending by both bitrate and index."""
    previous: Optional[Level] = None
    for level in levels:
        if previous is not None and (
            level.bitrate < previous.bitrate or level.index <= previous.index
        ):
            return False
        previous = level
    return True
