# Clip Editing Worker - FastAPI Server
# Sentence-aligned suggestions, timeline editing sessions and render hand-off

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError, model_validator
from typing import Any, Dict, List, Optional
from datetime import datetime
import logging
import uuid

import settings
from clip_models import (
    ClipSuggestion,
    RenderRequest,
    SubtitlePreset,
    SubtitleStyle,
    TranscriptFragment,
    parse_action,
)
from pipeline import ClipEditingPipeline
from render_plan import ClipRenderer
from subtitle_presets import JsonFileKeyValueStore, SubtitlePresetStore
from timeline_engine import (
    MIN_SEGMENT_DURATION,
    EditorSession,
    SetPlayhead,
    TrimSegmentEnd,
    TrimSegmentStart,
)

# Setup logging
logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# FastAPI app
app = FastAPI(
    title="ClipForge Clip Editing Worker",
    description="Sentence-aligned clip suggestions and timeline editing",
    version=settings.SERVICE_VERSION
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Request models
class SnapRequest(BaseModel):
    suggestions: List[ClipSuggestion]
    fragments: List[TranscriptFragment] = Field(default_factory=list)

class CreateSessionRequest(BaseModel):
    suggestion: ClipSuggestion
    cropX: float = Field(default=settings.DEFAULT_CROP_X, ge=0.0, le=1.0)

    @model_validator(mode='after')
    def check_duration(self) -> 'CreateSessionRequest':
        if self.suggestion.duration < MIN_SEGMENT_DURATION:
            raise ValueError(f"Suggestion must last at least {MIN_SEGMENT_DURATION}s")
        return self

class CommitRequest(BaseModel):
    videoUrl: str
    fragments: List[TranscriptFragment] = Field(default_factory=list)
    subtitleStyle: Optional[SubtitleStyle] = None

class CommitResponse(BaseModel):
    request: RenderRequest
    command: List[str]

class SavePresetRequest(BaseModel):
    name: str = Field(min_length=1)
    style: SubtitleStyle = Field(default_factory=SubtitleStyle)

# Editing sessions (one writer each), evicted when idle or over the cap
sessions: Dict[str, EditorSession] = {}
session_last_used: Dict[str, datetime] = {}


def get_preset_store() -> SubtitlePresetStore:
    return SubtitlePresetStore(JsonFileKeyValueStore(settings.PRESETS_PATH))


def get_session(session_id: str) -> EditorSession:
    if session_id not in sessions:
        raise HTTPException(status_code=404, detail="Session not found")
    session_last_used[session_id] = datetime.now()
    return sessions[session_id]


def prune_sessions() -> int:
    """Drop sessions idle past the timeout, then the oldest ones over the cap"""
    now = datetime.now()
    stale = [
        session_id for session_id, used in session_last_used.items()
        if (now - used).total_seconds() > settings.SESSION_IDLE_TIMEOUT
    ]

    by_age = sorted(
        (session_id for session_id in session_last_used if session_id not in stale),
        key=session_last_used.get
    )
    overflow = len(by_age) - settings.MAX_SESSIONS + 1
    if overflow > 0:
        stale.extend(by_age[:overflow])

    for session_id in stale:
        sessions.pop(session_id, None)
        session_last_used.pop(session_id, None)

    if stale:
        logger.info(f"Evicted {len(stale)} idle sessions")
    return len(stale)


def session_view(session_id: str, session: EditorSession) -> Dict[str, Any]:
    return {"sessionId": session_id, **session.to_dict()}


@app.get("/")
def read_root():
    """Health check"""
    return {
        "status": "running",
        "message": f"{settings.SERVICE_NAME} v{settings.SERVICE_VERSION}",
        "features": [
            "Sentence-aligned clip boundaries",
            "Segment timeline editing (split, trim, delete, recrop)",
            "Timeline-aligned subtitles",
            "Render command compilation"
        ]
    }

@app.get("/health")
def health_check():
    """Detailed health check"""
    import subprocess

    try:
        result = subprocess.run(
            [settings.FFMPEG_PATH, "-version"],
            capture_output=True,
            text=True,
            check=True,
            timeout=5
        )
        ffmpeg_status = "installed"
        ffmpeg_version = result.stdout.split('\n')[0]
    except Exception as e:
        ffmpeg_status = "not found"
        ffmpeg_version = str(e)

    return {
        "status": "healthy",
        "ffmpeg": {
            "status": ffmpeg_status,
            "version": ffmpeg_version
        },
        "sessions": len(sessions),
        "version": settings.SERVICE_VERSION
    }

@app.post("/clips/snap", response_model=List[ClipSuggestion])
def snap_clips(body: SnapRequest):
    """Align suggested clip ranges on sentence boundaries"""
    pipeline = ClipEditingPipeline(body.fragments)
    return pipeline.ingest_suggestions(body.suggestions)

@app.post("/sessions")
def create_session(body: CreateSessionRequest):
    """Open an editing session seeded with one segment"""
    session = ClipEditingPipeline([]).open_editor(body.suggestion, crop_x=body.cropX)
    prune_sessions()
    session_id = str(uuid.uuid4())
    sessions[session_id] = session
    session_last_used[session_id] = datetime.now()
    logger.info(f"Session created: {session_id}")
    return session_view(session_id, session)

@app.get("/sessions/{session_id}")
def read_session(session_id: str):
    return session_view(session_id, get_session(session_id))

@app.post("/sessions/{session_id}/actions")
def dispatch_action(session_id: str, action: Dict[str, Any]):
    """
    Apply one editor action

    The action is a dict with a ``type`` (SPLIT_AT_PLAYHEAD, TRIM_SEGMENT_END...)
    and its camelCase fields. Rejected edits leave the session unchanged.
    """
    session = get_session(session_id)

    try:
        parsed = parse_action(action, id_factory=session.id_factory)
    except ValidationError as e:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid editor action: {e.errors(include_url=False)}"
        )

    if isinstance(parsed, SetPlayhead):
        session.seek(parsed.time)
    else:
        session.dispatch(parsed)
        # Trims can shorten the timeline under the playhead
        if isinstance(parsed, (TrimSegmentStart, TrimSegmentEnd)):
            session.seek(session.state.playhead_time)

    return session_view(session_id, session)

@app.delete("/sessions/{session_id}")
def close_session(session_id: str):
    get_session(session_id)
    del sessions[session_id]
    del session_last_used[session_id]
    return {"status": "closed", "sessionId": session_id}

@app.post("/sessions/{session_id}/commit", response_model=CommitResponse)
def commit_session(session_id: str, body: CommitRequest):
    """Freeze the edit into a render request, write its subtitles and compile the ffmpeg command"""
    session = get_session(session_id)

    try:
        pipeline = ClipEditingPipeline(body.fragments)
        request = pipeline.commit(session, body.videoUrl, body.subtitleStyle)

        renderer = ClipRenderer(request, settings.TEMP_DIR / session_id)
        output_path = settings.TEMP_DIR / "outputs" / f"{session_id}.mp4"
        subtitle_path = renderer.write_subtitles()
        command = renderer.build_command(output_path, subtitle_path)
    except Exception as e:
        logger.error(f"Commit error for session {session_id}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail={
                "error": "Commit failed",
                "message": str(e),
                "session_id": session_id
            }
        )

    return CommitResponse(request=request, command=command)

@app.get("/presets", response_model=List[SubtitlePreset])
def list_presets(store: SubtitlePresetStore = Depends(get_preset_store)):
    return store.load()

@app.get("/presets/{preset_id}", response_model=SubtitlePreset)
def read_preset(preset_id: str, store: SubtitlePresetStore = Depends(get_preset_store)):
    preset = store.get(preset_id)
    if preset is None:
        raise HTTPException(status_code=404, detail="Preset not found")
    return preset

@app.post("/presets", response_model=SubtitlePreset)
def save_preset(body: SavePresetRequest, store: SubtitlePresetStore = Depends(get_preset_store)):
    return store.save(body.name, body.style)

@app.delete("/presets/{preset_id}")
def delete_preset(preset_id: str, store: SubtitlePresetStore = Depends(get_preset_store)):
    if not store.delete(preset_id):
        raise HTTPException(status_code=404, detail="Preset not found")
    return {"status": "deleted", "id": preset_id}

if __name__ == "__main__":
    import uvicorn

    print("=" * 70)
    print(f"{settings.SERVICE_NAME} v{settings.SERVICE_VERSION}")
    print("=" * 70)
    print(f"Server: http://localhost:{settings.SERVICE_PORT}")
    print(f"Docs: http://localhost:{settings.SERVICE_PORT}/docs")
    print("=" * 70)

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.SERVICE_PORT,
        log_level=settings.LOG_LEVEL.lower()
    )
