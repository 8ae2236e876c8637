"""
Intervals - Horizontal span clustering for column detection

Merges glyph extents into disjoint column spans and maps an x coordinate
back to the column it belongs to.
"""

from bisect import bisect_right
from dataclasses import dataclass
from typing import Iterable, List, Optional


@dataclass(frozen=True)
class Interval:
    """Closed pixel span [start, end]. Callers guarantee start <= end."""

    start: float
    end: float

    def contains(self, point: float) -> bool:
        return self.start <= point <= self.end


class ClusterSet:
    """
    Ordered, non-overlapping clusters built from possibly-overlapping intervals.

    Two intervals join the same cluster when the gap between them is at most
    ``threshold``. Merging chains: a-b close and b-c close puts a, b and c in
    one cluster even when a and c are far apart.

    Clusters are sorted by start and satisfy
    ``clusters[i + 1].start - clusters[i].end > threshold``.
    """

    def __init__(self, intervals: Iterable[Interval], threshold: float = 0.0):
        self.threshold = threshold
        self._clusters = self._merge(intervals, threshold)
        self._starts = [c.start for c in self._clusters]

    @staticmethod
    def _merge(intervals: Iterable[Interval], threshold: float) -> List[Interval]:
        ordered = sorted(intervals, key=lambda iv: iv.start)
        if not ordered:
            return []

        merged: List[Interval] = []
        cur_start = ordered[0].start
        cur_end = ordered[0].end

        for iv in ordered[1:]:
            if iv.start - cur_end <= threshold:
                cur_end = max(cur_end, iv.end)
            else:
                merged.append(Interval(cur_start, cur_end))
                cur_start, cur_end = iv.start, iv.end

        merged.append(Interval(cur_start, cur_end))
        return merged

    @property
    def clusters(self) -> List[Interval]:
        return list(self._clusters)

    def __len__(self) -> int:
        return len(self._clusters)

    def __iter__(self):
        return iter(self._clusters)

    def find(self, point: float) -> Optional[int]:
        """Index of the cluster containing ``point``, or None if it lies in a gap."""
        i = bisect_right(self._starts, point) - 1
        if i < 0:
            return None
        if point <= self._clusters[i].end:
            return i
        return None

    def index_of(self, point: float) -> int:
        """
        Index of the cluster ``point`` belongs to. Always resolves.

        Containment wins. A point in the gap between two clusters goes to the
        one whose nearer edge is closer (left cluster on a tie). Points before
        the first cluster map to 0, past the last to the last index. An empty
        set behaves as a single implicit column 0.

        Points are expected to come from an interval that was fed into this
        set, so the gap case only covers small disagreements between OCR
        passes.
        """
        if not self._clusters:
            return 0

        i = bisect_right(self._starts, point) - 1
        if i < 0:
            return 0

        if point <= self._clusters[i].end:
            return i

        last = len(self._clusters) - 1
        if i == last:
            return last

        left_dist = point - self._clusters[i].end
        right_dist = self._clusters[i + 1].start - point
        return i if left_dist <= right_dist else i + 1
