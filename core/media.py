from __future__ import annotations

from typing import List

# Seconds into a video at which frames are sampled for evaluation.
VIDEO_FRAME_TIMES = (0, 1, 3, 5)
END_FRAME_MIN_DURATION = 6.0
END_FRAME_CAP = 8.0
DEFAULT_VIDEO_DURATION = 10.0


def video_frame_times(duration: float | None) -> List[float]:
    """
    Timestamps (seconds) to capture from a video of the given duration.
    Fixed samples that fit inside the clip, plus one frame near the end for
    clips longer than six seconds.
    """
    d = float(duration) if duration else DEFAULT_VIDEO_DURATION
    times: List[float] = []
    for t in VIDEO_FRAME_TIMES:
        if t > d:
            break
        times.append(float(t))
    if d > END_FRAME_MIN_DURATION:
        times.append(min(d - 0.5, END_FRAME_CAP))
    return times
