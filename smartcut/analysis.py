"""
AI clip analysis.

Two stages per clip:
- transcribe: faster-whisper on audio extracted with ffmpeg
- group/score: Claude receives the timestamped transcript and returns
  segments grouped by retake, scored, with a best take per group

The model output is untrusted; it is always run through
validate_segments before it reaches the timeline.
"""

import json
import logging
import os
import subprocess
import tempfile
import time
from typing import Iterable, Optional

import anthropic
from faster_whisper import WhisperModel

from smartcut.models import ClipAnalysis, SourceClip
from smartcut.settings import settings
from smartcut.validation import coverage_report, validate_segments

logger = logging.getLogger(__name__)

# Seconds to wait between retries of a failed analysis call
RETRY_DELAY_S = 3.0


class AnalysisError(RuntimeError):
    """Transcription or model call failed, or returned unusable output."""


# --- Transcription ---

# Module-level cache for loaded models
_model_cache: dict[str, WhisperModel] = {}


def get_model(model_name: str) -> WhisperModel:
    """Get or load a whisper model (lazy loading with caching)."""
    if model_name not in _model_cache:
        logger.info(f"Loading model '{model_name}' (first use, will be cached)")
        _model_cache[model_name] = WhisperModel(model_name, device="cpu", compute_type="int8")
    return _model_cache[model_name]


def extract_audio(input_path: str, output_wav_path: str) -> None:
    """Extract mono 16kHz WAV audio from input media using ffmpeg."""
    cmd = [
        "ffmpeg",
        "-i", input_path,
        "-vn",                    # No video
        "-acodec", "pcm_s16le",   # PCM 16-bit
        "-ar", "16000",           # 16kHz sample rate
        "-ac", "1",               # Mono
        "-y",
        output_wav_path,
    ]

    result = subprocess.run(cmd, capture_output=True, text=True)

    if result.returncode != 0:
        logger.error(f"ffmpeg failed: {result.stderr}")
        raise AnalysisError(f"ffmpeg audio extraction failed: {result.stderr}")


def transcribe_clip(
    path: str,
    model_name: Optional[str] = None,
    language: Optional[str] = None,
) -> list[dict]:
    """
    Transcribe a clip into timestamped sentences.

    Args:
        path: Path to the clip
        model_name: Whisper model (defaults to settings)
        language: Language code, or None for auto-detect

    Returns:
        List of {"start", "end", "text"} dicts in clip-local seconds
    """
    model_name = model_name or settings.TRANSCRIBE_DEFAULT_MODEL
    os.makedirs(settings.TMP_DIR, exist_ok=True)

    with tempfile.TemporaryDirectory(dir=settings.TMP_DIR) as tmp_dir:
        wav_path = os.path.join(tmp_dir, "audio.wav")
        extract_audio(path, wav_path)

        logger.info(f"Transcribing '{path}' with model '{model_name}', language={language or 'auto'}")
        try:
            segments_iter, _info = get_model(model_name).transcribe(
                wav_path,
                language=language,
                beam_size=5,
            )

            segments = [
                {
                    "start": round(seg.start, 3),
                    "end": round(seg.end, 3),
                    "text": seg.text.strip(),
                }
                for seg in segments_iter
            ]
        except Exception as e:
            logger.exception(f"Transcription failed for '{path}'")
            raise AnalysisError(f"Transcription failed: {e}")

    logger.info(f"Transcription complete: {len(segments)} segments")
    return segments


# --- Prompt ---


def build_analysis_prompt(duration: float, transcript_segments: list[dict]) -> dict:
    """
    Build the system and user prompts for grouping and scoring.

    Returns:
        Dict with "system_prompt" and "user_prompt"
    """
    system_prompt = f"""You are a professional video transcription and editing assistant.

The clip is {duration:.1f} seconds long. You receive its transcript with timestamps.

## Task
1. Cut the clip into segments along natural sentences or semantic units.
2. Detect retakes: the speaker says something, stops, and says the same content again.
3. Give every retake of the same content the same groupId; different content gets a different groupId.
4. In each group mark the most fluent, complete take with isBest=true and a high score (80-100).
   Incomplete takes or takes with slips get isBest=false and a lower score (40-70).

## Segment rules
- Continuous: the end of one segment equals the start of the next.
- No overlaps and no gaps.
- The first segment starts at 0, the last ends at {duration:.0f}.
- Silence longer than 2 seconds is its own segment with text "[silence]",
  its own groupId (silence_1, silence_2, ...), score 0 and isBest=false.
- Short pauses (under 2 seconds) stay inside the current segment.

## Output
Respond with JSON only:
{{
  "summary": "short description of the clip",
  "segments": [
    {{"text": "...", "start": 0, "end": 5, "groupId": "g1", "score": 85, "isBest": true}}
  ]
}}"""

    lines = [
        f"[{seg['start']:.2f} - {seg['end']:.2f}] {seg['text']}"
        for seg in transcript_segments
    ]
    user_prompt = "Transcript:\n" + "\n".join(lines)

    return {
        "system_prompt": system_prompt,
        "user_prompt": user_prompt,
    }


def parse_analysis_response(response_text: str) -> dict:
    """
    Parse the model's JSON answer.

    Tolerates text around the JSON object.

    Raises:
        AnalysisError: If no valid JSON object is found
    """
    json_start = response_text.find("{")
    json_end = response_text.rfind("}") + 1
    json_str = response_text[json_start:json_end] if json_start >= 0 and json_end > json_start else response_text

    try:
        result = json.loads(json_str)
    except json.JSONDecodeError as e:
        logger.error(f"Failed to parse model response as JSON: {e}")
        raise AnalysisError(f"Model returned invalid JSON: {e}")

    if not isinstance(result, dict):
        raise AnalysisError("Model response is not a JSON object")

    return result


# --- Model call ---


def request_analysis(prompt: dict) -> str:
    """Send the prompt to Claude and return the response text."""
    client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)

    try:
        message = client.messages.create(
            model=settings.ANALYSIS_MODEL,
            max_tokens=settings.ANALYSIS_MAX_TOKENS,
            system=prompt["system_prompt"],
            messages=[
                {"role": "user", "content": prompt["user_prompt"]}
            ],
        )
    except anthropic.AnthropicError as e:
        raise AnalysisError(f"Claude API call failed: {e}")

    if not message.content:
        raise AnalysisError("Empty response from Claude")

    return message.content[0].text


def analyze_clip(
    clip: SourceClip,
    transcript_segments: Optional[list[dict]] = None,
    max_retries: Optional[int] = None,
) -> ClipAnalysis:
    """
    Analyze one clip into validated, grouped, scored segments.

    Args:
        clip: Clip with known duration and path
        transcript_segments: Pre-computed transcript (transcribed when None)
        max_retries: Retries of the model call (defaults to settings)

    Returns:
        ClipAnalysis with validated segments

    Raises:
        ValueError: If ANTHROPIC_API_KEY is not configured
        AnalysisError: If the clip can not be analyzed
    """
    if not settings.ANTHROPIC_API_KEY:
        raise ValueError("ANTHROPIC_API_KEY not configured")
    if clip.duration is None:
        raise AnalysisError(f"Clip '{clip.name}' has no duration yet")

    if transcript_segments is None:
        if not clip.path:
            raise AnalysisError(f"Clip '{clip.name}' has no media path")
        transcript_segments = transcribe_clip(clip.path)

    if not transcript_segments:
        logger.warning(f"Clip '{clip.name}' has no speech, nothing to analyze")
        return ClipAnalysis(summary="", segments=[])

    retries = settings.ANALYSIS_MAX_RETRIES if max_retries is None else max_retries
    prompt = build_analysis_prompt(clip.duration, transcript_segments)

    attempt = 0
    while True:
        try:
            logger.info(f"Analyzing '{clip.name}' ({clip.duration:.1f}s, {len(transcript_segments)} transcript segments)")
            result = parse_analysis_response(request_analysis(prompt))
            break
        except AnalysisError as e:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(f"Retry {attempt}/{retries} for '{clip.name}': {e}")
            time.sleep(RETRY_DELAY_S)

    segments = validate_segments(result.get("segments") or [], clip.duration)
    report = coverage_report(segments, clip.duration)
    logger.info(
        f"'{clip.name}': {report['segments']} segments, {report['groups']} groups, "
        f"{report['best_count']} best, coverage {report['coverage_percent']}%"
    )

    summary = result.get("summary")
    return ClipAnalysis(
        summary=summary if isinstance(summary, str) else "",
        segments=segments,
    )


def analyze_clips(clips: Iterable[SourceClip]) -> dict[str, ClipAnalysis]:
    """
    Analyze several clips, one at a time.

    Clips without a known duration are skipped. A failing clip is logged
    and left out of the result; it does not abort the others.

    Returns:
        Dict clip_id -> ClipAnalysis for the clips that succeeded
    """
    clips = list(clips)
    results: dict[str, ClipAnalysis] = {}

    for i, clip in enumerate(clips):
        if clip.duration is None:
            logger.info(f"Skipping '{clip.name}': duration not available yet")
            continue

        logger.info(f"Clip {i + 1}/{len(clips)}: {clip.name}")
        try:
            results[clip.id] = analyze_clip(clip)
        except AnalysisError as e:
            logger.error(f"Analysis failed for '{clip.name}': {e}")

    logger.info(f"Analysis done: {len(results)}/{len(clips)} clips")
    return results
