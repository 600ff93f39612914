"""Time -> asset lookup for the frame compositor."""

from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass

from framecast.schemas.composition import CompositionAsset


@dataclass
class ActiveAsset:
    """Result of an asset lookup at one instant."""

    current: CompositionAsset | None
    previous: CompositionAsset | None
    blend_progress: float
    index: int = -1
    # Start of the following asset, i.e. the end of current's slot
    next_start: float | None = None

    @property
    def in_transition(self) -> bool:
        return self.previous is not None and self.blend_progress < 1.0


class AssetResolver:
    """Maps a query time onto the ordered asset list.

    The asset active at ``time`` is the last one with ``start_time <= time``.
    Before the first start time the first asset is shown without a
    predecessor.
    """

    def __init__(self, assets: Sequence[CompositionAsset], transition_duration: float = 0.0):
        self.assets = list(assets)
        self.transition_duration = transition_duration
        self._starts = [asset.start_time for asset in self.assets]

    def active_asset(self, time: float) -> ActiveAsset:
        if not self.assets:
            return ActiveAsset(current=None, previous=None, blend_progress=1.0)

        index = max(bisect_right(self._starts, time) - 1, 0)
        current = self.assets[index]
        previous = self.assets[index - 1] if index > 0 else None

        if self.transition_duration <= 0:
            blend = 1.0
        else:
            blend = (time - current.start_time) / self.transition_duration
            blend = min(1.0, max(0.0, blend))

        next_start = self._starts[index + 1] if index + 1 < len(self._starts) else None
        return ActiveAsset(
            current=current,
            previous=previous,
            blend_progress=blend,
            index=index,
            next_start=next_start,
        )

    @staticmethod
    def read_position(
        asset: CompositionAsset,
        time: float,
        native_duration: float | None = None,
        frame_interval: float = 1 / 24,
    ) -> float:
        """Seconds into the asset's source media to show at ``time``.

        Video shorter than its slot holds its last frame: the read position
        is clamped to the final frame instead of wrapping around.
        """
        position = max(0.0, time - asset.start_time)
        duration = native_duration if native_duration is not None else asset.native_duration
        if asset.kind != "video" or duration is None:
            return position
        last_frame = max(0.0, duration - frame_interval)
        return min(position, last_frame)
