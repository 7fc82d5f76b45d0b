import logging
import threading
import uuid
from typing import Any, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from smartcut.analysis import analyze_clips
from smartcut.editor import EditorSession
from smartcut.export import ExportError, build_cut_list, render_cut_list
from smartcut.models import (
    AnalyzedSegment,
    ClipAnalysis,
    CutRange,
    SourceClip,
    TimelineSegment,
)
from smartcut.playhead import resolve
from smartcut.transcript import word_stats
from smartcut.utils import format_time
from smartcut.validation import coverage_report, validate_segments

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SmartCut Timeline API",
    description="AI-assisted cut editing: validate analysis, edit the timeline, export",
    version="0.1.0",
)

# In-memory editor sessions (no persistence)
_sessions: dict[str, EditorSession] = {}
_sessions_lock = threading.Lock()


# --- Pydantic Models ---


class HealthResponse(BaseModel):
    ok: bool


class ValidateSegmentsRequest(BaseModel):
    segments: list[Any]
    clip_duration: float


class ValidateSegmentsResponse(BaseModel):
    segments: list[AnalyzedSegment]
    coverage: dict


class ClipInput(BaseModel):
    id: Optional[str] = None
    name: str
    duration: Optional[float] = None
    path: Optional[str] = None


class CreateSessionRequest(BaseModel):
    clips: list[ClipInput] = []


class SessionResponse(BaseModel):
    id: str
    clips: list[SourceClip]
    segments: list[TimelineSegment]
    selected_id: Optional[str]
    can_undo: bool
    can_redo: bool
    total_duration: float
    total_duration_label: str
    words: dict
    changed: bool = False


class RawAnalysis(BaseModel):
    summary: str = ""
    segments: list[Any] = []


class LoadRequest(BaseModel):
    analyses: dict[str, RawAnalysis]
    append: bool = False


class SegmentIdRequest(BaseModel):
    segment_id: Optional[str] = None


class SplitRequest(BaseModel):
    time: Optional[float] = None


class MergeRequest(BaseModel):
    first_id: str
    second_id: str


class ReorderRequest(BaseModel):
    from_index: int
    to_index: int


class ResizeRequest(BaseModel):
    segment_id: str
    start: float
    end: float


class DeleteWordsRequest(BaseModel):
    word_ids: list[str]


class ResolveResponse(BaseModel):
    time: float
    segment: Optional[TimelineSegment] = None
    index: Optional[int] = None
    offset: Optional[float] = None
    source_time: Optional[float] = None


class CutListResponse(BaseModel):
    cuts: list[CutRange]
    duration_s: float


class AnalyzeRequest(BaseModel):
    clip_ids: Optional[list[str]] = None
    append: bool = False


class ExportRequest(BaseModel):
    output_path: str
    reencode: bool = False
    honor_deleted_words: bool = False


class ExportResponse(BaseModel):
    output: str
    segments_rendered: int
    duration_s: float


# --- Helpers ---


def _get_session(session_id: str) -> EditorSession:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=404,
            detail=f"Session not found: {session_id}",
        )
    return session


def _session_response(session_id: str, session: EditorSession, changed: bool = False) -> dict:
    return {
        "id": session_id,
        "clips": list(session.clips.values()),
        "segments": list(session.segments),
        "selected_id": session.selected_id,
        "can_undo": session.history.can_undo,
        "can_redo": session.history.can_redo,
        "total_duration": round(session.total_duration, 3),
        "total_duration_label": format_time(session.total_duration),
        "words": word_stats(session.segments),
        "changed": changed,
    }


def _to_clip(clip: ClipInput) -> SourceClip:
    return SourceClip(
        id=clip.id or uuid.uuid4().hex,
        name=clip.name,
        duration=clip.duration,
        path=clip.path,
    )


# --- Endpoints ---


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return {"ok": True}


@app.post("/segments/validate", response_model=ValidateSegmentsResponse)
async def validate_segments_endpoint(request: ValidateSegmentsRequest):
    """
    Validate raw analysis segments for one clip.

    Clamps ranges into the clip, drops degenerate segments, removes
    overlaps and enforces one best take per group. Never fails on bad
    segment data.
    """
    if request.clip_duration <= 0:
        raise HTTPException(
            status_code=400,
            detail="clip_duration must be greater than 0",
        )

    segments = validate_segments(request.segments, request.clip_duration)
    return {
        "segments": segments,
        "coverage": coverage_report(segments, request.clip_duration),
    }


@app.post("/sessions", response_model=SessionResponse)
async def create_session(request: CreateSessionRequest):
    """Create an empty editor session with optional source clips."""
    session_id = uuid.uuid4().hex
    session = EditorSession(clips=[_to_clip(c) for c in request.clips])

    with _sessions_lock:
        _sessions[session_id] = session

    logger.info(f"Created session {session_id} with {len(session.clips)} clips")
    return _session_response(session_id, session)


@app.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str):
    return _session_response(session_id, _get_session(session_id))


@app.post("/sessions/{session_id}/clips", response_model=SessionResponse)
async def add_clip(session_id: str, clip: ClipInput):
    """Register a clip, or update it (e.g. once its duration is probed)."""
    session = _get_session(session_id)
    with _sessions_lock:
        session.add_clip(_to_clip(clip))
    return _session_response(session_id, session, changed=True)


@app.post("/sessions/{session_id}/load", response_model=SessionResponse)
async def load_analysis(session_id: str, request: LoadRequest):
    """
    Load raw analysis results into the timeline.

    Every batch is validated against its clip's duration first. Clips must
    be registered and have a known duration.
    """
    session = _get_session(session_id)

    analyses = {}
    for clip_id, raw in request.analyses.items():
        clip = session.clips.get(clip_id)
        if clip is None:
            raise HTTPException(
                status_code=404,
                detail=f"Clip not found: {clip_id}",
            )
        if clip.duration is None:
            raise HTTPException(
                status_code=400,
                detail=f"Clip duration not available yet: {clip_id}",
            )
        analyses[clip_id] = ClipAnalysis(
            summary=raw.summary,
            segments=validate_segments(raw.segments, clip.duration),
        )

    with _sessions_lock:
        changed = session.load_analysis(analyses, append=request.append)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/delete", response_model=SessionResponse)
async def delete_segment(session_id: str, request: SegmentIdRequest):
    """Delete a segment (the selected one when segment_id is omitted)."""
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.delete(request.segment_id)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/split", response_model=SessionResponse)
async def split_segment(session_id: str, request: SplitRequest):
    """Split at a global time (the playhead when omitted); selects the second piece."""
    session = _get_session(session_id)
    with _sessions_lock:
        second_id = session.split(request.time)
    return _session_response(session_id, session, second_id is not None)


@app.post("/sessions/{session_id}/merge", response_model=SessionResponse)
async def merge_segments(session_id: str, request: MergeRequest):
    session = _get_session(session_id)
    with _sessions_lock:
        merged_id = session.merge(request.first_id, request.second_id)
    return _session_response(session_id, session, merged_id is not None)


@app.post("/sessions/{session_id}/reorder", response_model=SessionResponse)
async def reorder_segments(session_id: str, request: ReorderRequest):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.reorder(request.from_index, request.to_index)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/resize", response_model=SessionResponse)
async def resize_segment(session_id: str, request: ResizeRequest):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.resize(request.segment_id, request.start, request.end)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/words/delete", response_model=SessionResponse)
async def delete_words(session_id: str, request: DeleteWordsRequest):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.delete_words(request.word_ids)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/words/remove-fillers", response_model=SessionResponse)
async def remove_fillers(session_id: str):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.remove_fillers()
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/words/restore", response_model=SessionResponse)
async def restore_words(session_id: str):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.restore_words()
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/undo", response_model=SessionResponse)
async def undo(session_id: str):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.undo()
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/redo", response_model=SessionResponse)
async def redo(session_id: str):
    session = _get_session(session_id)
    with _sessions_lock:
        changed = session.redo()
    return _session_response(session_id, session, changed)


@app.get("/sessions/{session_id}/resolve", response_model=ResolveResponse)
async def resolve_playhead(session_id: str, t: float):
    """Map a global playhead time to the active segment and source time."""
    session = _get_session(session_id)
    position = resolve(session.segments, t)
    if position is None:
        return {"time": t}

    return {
        "time": t,
        "segment": position.segment,
        "index": position.index,
        "offset": position.offset,
        "source_time": position.source_time,
    }


@app.get("/sessions/{session_id}/cut-list", response_model=CutListResponse)
async def cut_list(session_id: str, honor_deleted_words: bool = False):
    session = _get_session(session_id)
    try:
        cuts = build_cut_list(session.segments, session.clips, honor_deleted_words)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "cuts": cuts,
        "duration_s": round(sum(cut.end - cut.start for cut in cuts), 3),
    }


@app.post("/sessions/{session_id}/analyze", response_model=SessionResponse)
def analyze_session(session_id: str, request: AnalyzeRequest):
    """
    Run AI analysis on the session's clips and load the results.

    Clips without a known duration are skipped. The timeline is only
    touched if at least one clip was analyzed successfully.
    """
    session = _get_session(session_id)

    clips = session.analyzable_clips()
    if request.clip_ids is not None:
        clips = [clip for clip in clips if clip.id in request.clip_ids]
    if not clips:
        raise HTTPException(
            status_code=400,
            detail="No clips with a known duration to analyze",
        )

    try:
        analyses = analyze_clips(clips)
    except ValueError as e:
        logger.exception("Analysis failed")
        raise HTTPException(status_code=500, detail=str(e))
    except Exception:
        logger.exception("Analysis failed")
        raise HTTPException(
            status_code=500,
            detail="Analysis failed. Check server logs for details.",
        )

    if not analyses:
        raise HTTPException(
            status_code=502,
            detail="Analysis failed for every clip. Check server logs for details.",
        )

    with _sessions_lock:
        changed = session.load_analysis(analyses, append=request.append)
    return _session_response(session_id, session, changed)


@app.post("/sessions/{session_id}/export", response_model=ExportResponse)
def export_session(session_id: str, request: ExportRequest):
    """Render the timeline to a single video file with ffmpeg."""
    session = _get_session(session_id)

    try:
        cuts = build_cut_list(session.segments, session.clips, request.honor_deleted_words)
    except ExportError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        return render_cut_list(cuts, session.clips, request.output_path, request.reencode)
    except ExportError:
        logger.exception("Export failed")
        raise HTTPException(
            status_code=500,
            detail="Export failed. Check server logs for details.",
        )
