#!/usr/bin/env python3
"""
keyframe_file.py — Plain-text keyframe persistence for PathCam.

Format (whitespace separated, indentation is cosmetic):

    num_key_frames: 3
    frame: 0
        position: 0.0 0.0 0.0
        orientation: 0.0 0.0 0.0 1.0
    ...

Only positions and orientations are stored. Tangents are derived, and times
are re-assigned by the chord-length rule when the file is read back.
"""

from __future__ import annotations

import logging
from typing import Iterator, List, Sequence

from pose import Pose

logger = logging.getLogger("PathCam.File")


def _fmt(values) -> str:
    return " ".join(repr(float(v)) for v in values)


def save_poses(file_name: str, poses: Sequence[Pose]) -> bool:
    """
    Write poses in keyframe format. Also used to dump a sampled path so it
    can be reloaded and inspected as keyframes.
    Returns True only if the file was written and holds at least one pose.
    """
    try:
        with open(file_name, "w") as output:
            output.write(f"\tnum_key_frames: {len(poses)}\n")
            for index, pose in enumerate(poses):
                output.write(f"\tframe: {index}\n")
                output.write(f"\t\tposition: {_fmt(pose.position)}\n")
                output.write(f"\t\torientation: {_fmt(pose.orientation)}\n")
    except OSError as e:
        logger.error(f"unable to open '{file_name}': {e}")
        return False
    return len(poses) > 0


def _expect(tokens: Iterator[str], label: str):
    token = next(tokens)
    if token != label:
        raise ValueError(f"expected '{label}', found '{token}'")


def _floats(tokens: Iterator[str], n: int) -> List[float]:
    return [float(next(tokens)) for _ in range(n)]


def read_poses(file_name: str) -> List[Pose]:
    """
    Parse a keyframe file. Raises OSError if it cannot be opened; a truncated
    or malformed file yields the poses read before the problem (logged).
    """
    with open(file_name) as f:
        tokens = iter(f.read().split())

    poses: List[Pose] = []
    try:
        _expect(tokens, "num_key_frames:")
        count = int(next(tokens))
        for _ in range(count):
            _expect(tokens, "frame:")
            next(tokens)   # frame index, informational only
            _expect(tokens, "position:")
            position = _floats(tokens, 3)
            _expect(tokens, "orientation:")
            orientation = _floats(tokens, 4)
            poses.append(Pose(position, orientation))
    except StopIteration:
        logger.error(f"'{file_name}': unexpected end of file after {len(poses)} keyframes")
    except ValueError as e:
        logger.error(f"'{file_name}': malformed keyframe {len(poses)}: {e}")
    return poses
