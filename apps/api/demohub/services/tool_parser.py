"""
Extracts a tool call (name + args) from provider tool-call, transcription and
utterance events, canonicalising the many aliases the persona emits.
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any

KNOWN_TOOLS = frozenset(
    {"fetch_video", "pause_video", "play_video", "next_video", "close_video", "show_trial_cta"}
)
NO_ARG_TOOLS = frozenset(
    {"pause_video", "play_video", "next_video", "close_video", "show_trial_cta"}
)

_ALIASES = {
    "pause_video": {
        "pause", "pause_video", "hold", "hold on", "pause the video", "pause video",
    },
    "play_video": {
        "resume", "play", "play_video", "continue", "unpause", "start", "start video",
        "resume video", "play the video", "play video",
    },
    "next_video": {"next", "next_video", "skip", "skip video", "next video"},
    "close_video": {
        "close", "close_video", "exit", "stop", "stop video", "end video", "hide video",
        "close the video", "close video",
    },
}

_TOOL_CALL_RE = re.compile(r"\b([a-zA-Z_]+)\s*\(([^)]*)\)")
_NEGATION_RE = re.compile(
    r"\b(don't|do not|dont|no)\s+(pause|close|stop|end|hide|play|resume|continue|start|next|skip)\b"
)
_PAUSE_RE = re.compile(r"\b(pause|hold(?:\s+on)?)\b")
_PLAY_RE = re.compile(r"\b(resume|play|continue|unpause|start)(?:\s+(?:the\s+)?video)?\b")
_NEXT_RE = re.compile(r"\b(next|skip)(?:\s+(?:the\s+)?video)?\b")
_CLOSE_RE = re.compile(r"\b(close|exit)\b(?:.*\bvideo\b)?")
_STOP_VIDEO_RE = re.compile(r"\b(stop|end|hide)\b\s+(?:the\s+)?video\b")
_POLITE_RE = re.compile(
    r"\b(please|kindly|can you|could you|would you|will you|the|this|that)\b"
)
_KV_TITLE_RE = re.compile(
    r"(?:title|video_title|videoName|video_name)\s*[:=]\s*[\"'](.+?)[\"']", re.IGNORECASE
)
_QUOTED_RE = re.compile(r"^[\"'](.+?)[\"']$")
_TITLE_KEYS = ("title", "video_title", "videoName", "video_name")


@dataclass(frozen=True)
class ToolCall:
    name: str | None = None
    args: Any = field(default=None)

    @property
    def video_title(self) -> str:
        title = extract_title(self.args)
        return _strip_quotes(title.strip()) if title else ""


def _strip_quotes(value: str) -> str:
    return re.sub(r"^['\"]|['\"]$", "", value)


def canonicalize_tool_name(name: Any) -> str | None:
    if not isinstance(name, str):
        return None
    normalized = name.strip().lower()
    for canonical, aliases in _ALIASES.items():
        if normalized in aliases:
            return canonical
    return None


def map_utterance_to_tool(speech: Any) -> str | None:
    if not isinstance(speech, str) or not speech:
        return None
    text = re.sub(r"[.!?]+$", "", speech.strip().lower())
    text = re.sub(r"\s+", " ", text)

    direct = canonicalize_tool_name(text)
    if direct:
        return direct
    if _NEGATION_RE.search(text):
        return None
    if _PAUSE_RE.search(text):
        return "pause_video"
    if _PLAY_RE.search(text):
        return "play_video"
    if _NEXT_RE.search(text):
        return "next_video"
    if _CLOSE_RE.search(text) or _STOP_VIDEO_RE.search(text):
        return "close_video"
    return None


def extract_title(args: Any) -> str | None:
    if not args:
        return None
    if isinstance(args, str):
        return args
    if isinstance(args, dict):
        for key in _TITLE_KEYS:
            value = args.get(key)
            if value is not None:
                return value if isinstance(value, str) else None
    return None


def command_from_title(title: str | None) -> str | None:
    """A fetch_video whose "title" is really a control command, e.g. "pause please"."""
    if not isinstance(title, str) or not title:
        return None
    normalized = _strip_quotes(title.strip()).lower()
    normalized = re.sub(r"\s+", " ", re.sub(r"[.!?]+$", "", normalized))
    sanitized = re.sub(r"\s+", " ", _POLITE_RE.sub(" ", normalized)).strip()
    return canonicalize_tool_name(sanitized) or map_utterance_to_tool(sanitized)


def _parse_loose_args(raw: str, fallback: Any) -> Any:
    text = raw.strip()
    quoted = _QUOTED_RE.match(text)
    if quoted:
        return {"title": quoted.group(1)}
    kv = _KV_TITLE_RE.search(text)
    if kv:
        return {"title": kv.group(1)}
    return fallback


def _parse_args(raw: Any, loose_fallback: Any) -> Any:
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return _parse_loose_args(raw, loose_fallback)
        if isinstance(parsed, str):
            return {"title": _strip_quotes(parsed)}
        if isinstance(parsed, dict):
            return parsed
        return None
    return raw


def _first(*candidates: Any) -> Any:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def _get(source: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(source, dict):
            return None
        source = source.get(key)
    return source


def _remap_fetch(call: ToolCall) -> ToolCall:
    if call.name == "fetch_video":
        control = command_from_title(extract_title(call.args))
        if control:
            return ToolCall(control, {})
    return call


def _from_tool_call_event(event: dict) -> ToolCall:
    name = _first(
        _get(event, "data", "name"),
        _get(event, "data", "function", "name"),
        event.get("name"),
        _get(event, "function", "name"),
        _get(event, "data", "properties", "name"),
        _get(event, "data", "properties", "function", "name"),
        _get(event, "properties", "name"),
        _get(event, "properties", "function", "name"),
    )
    raw_args = _first(
        _get(event, "data", "args"),
        _get(event, "data", "arguments"),
        _get(event, "data", "function", "arguments"),
        event.get("args"),
        event.get("arguments"),
        _get(event, "function", "arguments"),
        _get(event, "data", "properties", "args"),
        _get(event, "data", "properties", "arguments"),
        _get(event, "data", "properties", "function", "arguments"),
        _get(event, "properties", "args"),
        _get(event, "properties", "arguments"),
        _get(event, "properties", "function", "arguments"),
    )
    fallback = {"title": raw_args.strip()} if isinstance(raw_args, str) else None
    args = _parse_args(raw_args, fallback)

    if isinstance(name, str) and name not in KNOWN_TOOLS:
        canonical = canonicalize_tool_name(name)
        if canonical:
            return ToolCall(canonical, {})
    return _remap_fetch(ToolCall(name if isinstance(name, str) else None, args))


def _from_transcript_event(event: dict) -> ToolCall:
    transcript = _first(_get(event, "data", "transcript"), _get(event, "properties", "transcript"))
    if not isinstance(transcript, list):
        return ToolCall()
    calls = [
        msg["tool_calls"] for msg in transcript
        if isinstance(msg, dict)
        and msg.get("role") == "assistant"
        and isinstance(msg.get("tool_calls"), list)
        and msg["tool_calls"]
    ]
    if not calls or not isinstance(calls[-1][0], dict):
        return ToolCall()
    tool_call = calls[-1][0]
    name = _get(tool_call, "function", "name")
    effective = canonicalize_tool_name(name) or name
    if not isinstance(effective, str) or effective not in KNOWN_TOOLS:
        return ToolCall()

    no_arg_default = {} if effective in NO_ARG_TOOLS else None
    raw_args = _get(tool_call, "function", "arguments") or "{}"
    args = _parse_args(raw_args, no_arg_default)
    if args is None:
        args = no_arg_default
    return _remap_fetch(ToolCall(effective, args))


def _from_utterance_event(event: dict) -> ToolCall:
    speech = (
        _get(event, "data", "speech")
        or _get(event, "data", "properties", "speech")
        or event.get("speech")
        or _get(event, "properties", "speech")
        or ""
    )
    if not isinstance(speech, str):
        return ToolCall()
    if speech in KNOWN_TOOLS:
        return ToolCall(speech, {})
    direct = map_utterance_to_tool(speech)
    if direct:
        return ToolCall(direct, {})

    match = _TOOL_CALL_RE.search(speech)
    if not match:
        return ToolCall()
    name, raw_args = match.group(1), match.group(2)
    try:
        parsed = json.loads(raw_args)
    except ValueError:
        cleaned = raw_args.strip()
        if name == "fetch_video":
            args: Any = {"title": cleaned.replace('"', "").replace("'", "")}
        elif name in NO_ARG_TOOLS:
            args = {}
        else:
            args = {"arg": cleaned}
    else:
        if isinstance(parsed, str):
            args = {"title": _strip_quotes(parsed)}
        elif isinstance(parsed, dict):
            args = parsed
        else:
            args = None

    canonical = canonicalize_tool_name(name)
    if canonical:
        return ToolCall(canonical, {})
    return _remap_fetch(ToolCall(name, args))


def normalize_event_type(event: dict) -> str:
    raw = _first(
        event.get("event_type"),
        event.get("type"),
        _get(event, "data", "event_type"),
        _get(event, "data", "type"),
    )
    if not isinstance(raw, str):
        return ""
    return re.sub(r"[.\-]", "_", raw.lower())


def is_tool_call_type(normalized_type: str) -> bool:
    return "tool_call" in normalized_type or normalized_type.endswith("toolcall")


def parse_tool_call(event: Any, text_fallback: bool = False) -> ToolCall:
    if not isinstance(event, dict):
        return ToolCall()
    normalized = normalize_event_type(event)

    if is_tool_call_type(normalized):
        return _from_tool_call_event(event)
    if "transcription" in normalized:
        return _from_transcript_event(event)
    if "utterance" in normalized:
        if not text_fallback:
            return ToolCall()
        return _from_utterance_event(event)
    return ToolCall()
