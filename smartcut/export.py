"""
Export of the edited timeline.

build_cut_list turns the sequence into the ordered (clip, start, end)
list the renderer needs. render_cut_list trims each range with ffmpeg
and stitches the pieces with the concat demuxer.
"""

import logging
import os
import subprocess
import tempfile
from typing import Mapping, Sequence

from smartcut.models import CutRange, SourceClip, TimelineSegment
from smartcut.settings import settings
from smartcut.transcript import kept_ranges

logger = logging.getLogger(__name__)


class ExportError(RuntimeError):
    """The cut list could not be built or rendered."""


def build_cut_list(
    segments: Sequence[TimelineSegment],
    clips: Mapping[str, SourceClip],
    honor_deleted_words: bool = False,
) -> list[CutRange]:
    """
    Build the ordered cut list for rendering.

    Args:
        segments: Timeline sequence in playback order
        clips: Known source clips by id
        honor_deleted_words: Leave out the source time of soft-deleted words

    Returns:
        List of CutRange in playback order

    Raises:
        ExportError: If the sequence is empty or references an unknown clip
    """
    if not segments:
        raise ExportError("No segments to export")

    cuts = []
    for seg in segments:
        if seg.clip_id not in clips:
            raise ExportError(f"Clip not found: {seg.clip_id}")

        if honor_deleted_words:
            ranges = kept_ranges(seg)
        else:
            ranges = [(seg.range.start, seg.range.end)]

        for start, end in ranges:
            if end > start:
                cuts.append(CutRange(clip_id=seg.clip_id, start=start, end=end))

    if not cuts:
        raise ExportError("No segments to export")

    return cuts


def _trim_command(input_path: str, start: float, duration: float, output_path: str, reencode: bool) -> list[str]:
    if reencode:
        codec_args = ["-c:v", "libx264", "-preset", "fast", "-c:a", "aac"]
    else:
        codec_args = ["-c", "copy", "-avoid_negative_ts", "make_zero"]

    return [
        "ffmpeg",
        "-ss", str(start),
        "-i", input_path,
        "-t", str(duration),
        *codec_args,
        "-f", "mpegts",
        "-y",
        output_path,
    ]


def render_cut_list(
    cuts: Sequence[CutRange],
    clips: Mapping[str, SourceClip],
    output_path: str,
    reencode: bool = False,
) -> dict:
    """
    Render the cut list into a single video file.

    Each range is trimmed to MPEG-TS (stream copy, falling back to
    re-encoding) and the pieces are joined with the ffmpeg concat demuxer.

    Args:
        cuts: Ordered cut list
        clips: Source clips by id (must have a path)
        output_path: Path for the rendered file
        reencode: Force re-encoding of every piece

    Returns:
        Dict with output path, number of pieces and total duration

    Raises:
        ExportError: If a clip has no media path or ffmpeg fails
    """
    if not cuts:
        raise ExportError("No segments to export")

    logger.info(f"Rendering {len(cuts)} ranges -> {output_path}")

    os.makedirs(settings.TMP_DIR, exist_ok=True)

    with tempfile.TemporaryDirectory(dir=settings.TMP_DIR) as tmp_dir:
        piece_paths = []

        for i, cut in enumerate(cuts):
            clip = clips.get(cut.clip_id)
            if clip is None or not clip.path:
                raise ExportError(f"No media file for clip: {cut.clip_id}")

            piece_path = os.path.join(tmp_dir, f"segment_{i:03d}.ts")
            duration = round(cut.end - cut.start, 3)

            logger.info(f"Trimming piece {i}: {clip.name} {cut.start:.2f}s for {duration}s")
            result = subprocess.run(
                _trim_command(clip.path, cut.start, duration, piece_path, reencode),
                capture_output=True,
                text=True,
            )

            if result.returncode != 0 and not reencode:
                logger.warning(f"Stream copy failed for piece {i}, re-encoding")
                result = subprocess.run(
                    _trim_command(clip.path, cut.start, duration, piece_path, True),
                    capture_output=True,
                    text=True,
                )

            if result.returncode != 0:
                raise ExportError(f"ffmpeg segment trim failed: {result.stderr}")

            piece_paths.append(piece_path)

        concat_list_path = os.path.join(tmp_dir, "concat_list.txt")
        with open(concat_list_path, "w") as f:
            for piece_path in piece_paths:
                f.write(f"file '{piece_path}'\n")

        concat_cmd = [
            "ffmpeg",
            "-f", "concat",
            "-safe", "0",
            "-i", concat_list_path,
            "-c", "copy",
            "-y",
            output_path,
        ]

        result = subprocess.run(concat_cmd, capture_output=True, text=True)

        if result.returncode != 0:
            logger.error(f"ffmpeg concat failed: {result.stderr}")
            raise ExportError(f"ffmpeg concat failed: {result.stderr}")

    total_duration_s = round(sum(cut.end - cut.start for cut in cuts), 2)
    logger.info(f"Export complete: {output_path}, {len(cuts)} pieces, {total_duration_s}s")

    return {
        "output": output_path,
        "segments_rendered": len(cuts),
        "duration_s": total_duration_s,
    }
