from typing import Tuple

def page_bounds(total: int, limit: int, offset: int) -> Tuple[int, int]:
    """Window `[total - offset - limit, total - offset)` clamped to `[0, total]`.

    Offsets count backwards from the newest entry.
    """
    end = min(max(total - offset, 0), total)
    start = min(max(total - offset - limit, 0), end)
    return start, end
