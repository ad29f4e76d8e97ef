"""
Digit Box Selection
===================

Filtering, deduplication and row alignment of digit-wheel candidates.

A single digit often produces nested inner and outer contours that both
pass the size filter. BoxSet keeps only one box per overlapping group,
and select_digit_row picks the largest group of boxes that sit on one
horizontal row.

Merge Rule (first kept box that intersects the new box decides):
    kept.area <  new.area  -> kept removed, new appended   (REPLACED)
    kept.area >= new.area  -> new discarded                (DISCARDED)
    no intersecting box    -> new appended                 (APPENDED)
"""

from enum import Enum
from typing import Iterable, Iterator, List, Sequence

from counter_ocr.models.geometry import BoundingBox


# Boxes narrower than this are treated as noise
MIN_DIGIT_WIDTH = 10

# Maximum height difference between boxes of one row (pixels)
ROW_HEIGHT_TOLERANCE = 10


class MergeAction(str, Enum):
    """What BoxSet.add did with a new box."""

    APPENDED = "APPENDED"
    REPLACED = "REPLACED"
    DISCARDED = "DISCARDED"


def passes_size_filter(box: BoundingBox, min_height: int, max_height: int) -> bool:
    """
    Check the digit size invariant.

    A digit crop is taller than it is wide, wider than the noise floor
    and within the configured height range (all bounds exclusive).
    """
    return (
        min_height < box.height < max_height
        and MIN_DIGIT_WIDTH < box.width < box.height
    )


class BoxSet:
    """
    Deduplicated, insertion-ordered collection of candidate boxes.

    Replacement removes the smaller kept box and appends the new one at
    the end, so encounter order is preserved for the remaining boxes.

    Example:
        boxes = BoxSet()
        boxes.add(BoundingBox(10, 10, 20, 40))
        boxes.add(BoundingBox(9, 9, 22, 42))   # REPLACED
        assert len(boxes) == 1
    """

    def __init__(self, boxes: Iterable[BoundingBox] = ()) -> None:
        self._boxes: List[BoundingBox] = []
        for box in boxes:
            self.add(box)

    def add(self, box: BoundingBox) -> MergeAction:
        """
        Merge a new box into the set.

        Args:
            box: Candidate box (already size-filtered)

        Returns:
            The action taken
        """
        for index, kept in enumerate(self._boxes):
            if kept.intersects(box):
                if kept.area < box.area:
                    del self._boxes[index]
                    self._boxes.append(box)
                    return MergeAction.REPLACED
                return MergeAction.DISCARDED
        self._boxes.append(box)
        return MergeAction.APPENDED

    def __len__(self) -> int:
        return len(self._boxes)

    def __iter__(self) -> Iterator[BoundingBox]:
        return iter(self._boxes)

    def __getitem__(self, index: int) -> BoundingBox:
        return self._boxes[index]

    def to_list(self) -> List[BoundingBox]:
        return list(self._boxes)


def is_aligned(
    anchor: BoundingBox,
    other: BoundingBox,
    y_tolerance: int,
    height_tolerance: int = ROW_HEIGHT_TOLERANCE,
) -> bool:
    """True if ``other`` sits on the same row as ``anchor``."""
    return (
        abs(anchor.y - other.y) < y_tolerance
        and abs(anchor.height - other.height) < height_tolerance
    )


def find_aligned_boxes(
    boxes: Sequence[BoundingBox],
    anchor_index: int,
    y_tolerance: int,
    height_tolerance: int = ROW_HEIGHT_TOLERANCE,
) -> List[BoundingBox]:
    """
    Collect the anchor and the aligned boxes that follow it.

    Only boxes after the anchor are considered. Alignment is measured
    against the anchor only, not pairwise.

    Args:
        boxes: All candidate boxes
        anchor_index: Index of the anchor box
        y_tolerance: Maximum |Δy| (exclusive)
        height_tolerance: Maximum |Δheight| (exclusive)

    Returns:
        Anchor first, then aligned boxes in input order
    """
    anchor = boxes[anchor_index]
    row = [anchor]
    for other in boxes[anchor_index + 1:]:
        if is_aligned(anchor, other, y_tolerance, height_tolerance):
            row.append(other)
    return row


def select_digit_row(
    boxes: Sequence[BoundingBox],
    y_tolerance: int,
    height_tolerance: int = ROW_HEIGHT_TOLERANCE,
) -> List[BoundingBox]:
    """
    Pick the largest set of aligned boxes and order it left to right.

    Every box is tried as anchor. On ties the first maximal set found
    is kept. O(n²) in the number of candidates.

    Args:
        boxes: Deduplicated candidate boxes in encounter order
        y_tolerance: Row y tolerance (pixels)
        height_tolerance: Row height tolerance (pixels)

    Returns:
        Boxes of the digit row sorted by ascending x (empty if no boxes)
    """
    best: List[BoundingBox] = []
    for anchor_index in range(len(boxes)):
        row = find_aligned_boxes(boxes, anchor_index, y_tolerance, height_tolerance)
        if len(row) > len(best):
            best = row
    return sorted(best, key=lambda box: box.x)
