"""
Scrub index: random access into the extracted frames (the thumbnail strip).

The index holds no position of its own. The selected entry is always the
playback controller's current index, and selecting an entry is a seek, which
stops any running playback.
"""

from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

from posereplay.assembler import FrameImage, FrameRecord
from posereplay.playback import PlaybackController, PlaybackState


def format_timestamp(timestamp_ms: float) -> str:
    """Display label in seconds with one decimal, e.g. '1.2s'."""
    return f"{timestamp_ms / 1000.0:.1f}s"


@dataclass(frozen=True)
class ScrubEntry:
    index: int
    timestamp_ms: float
    label: str
    thumbnail: Optional[FrameImage]

    @property
    def thumbnail_uri(self) -> str:
        return self.thumbnail.to_data_uri() if self.thumbnail is not None else ""


class ScrubIndex:
    """
    Random-access view over the controller's current records.

    Example:
        >>> scrub = ScrubIndex(controller)
        >>> [entry.label for entry in scrub][:3]
        ['0.0s', '0.1s', '0.3s']
        >>> scrub.select(2)        # pauses playback at record 2
    """

    def __init__(self, controller: PlaybackController):
        self.controller = controller
        self._cached_records: Tuple[FrameRecord, ...] = ()
        self._cached_entries: List[ScrubEntry] = []

    @property
    def entries(self) -> List[ScrubEntry]:
        records = self.controller.state.records
        if records is not self._cached_records:
            self._cached_entries = [
                ScrubEntry(
                    index=idx,
                    timestamp_ms=record.timestamp_ms,
                    label=format_timestamp(record.timestamp_ms),
                    thumbnail=record.frame_image,
                )
                for idx, record in enumerate(records)
            ]
            self._cached_records = records
        return self._cached_entries

    @property
    def selected_index(self) -> Optional[int]:
        return self.controller.state.current_index

    def select(self, index: int) -> PlaybackState:
        return self.controller.seek(index)

    def __getitem__(self, index: int) -> ScrubEntry:
        return self.entries[index]

    def __len__(self) -> int:
        return len(self.controller.state.records)

    def __iter__(self) -> Iterator[ScrubEntry]:
        return iter(self.entries)
