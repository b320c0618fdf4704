import pytest

from demohub.services.tool_parser import (
    canonicalize_tool_name,
    command_from_title,
    map_utterance_to_tool,
    normalize_event_type,
    parse_tool_call,
)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("pause", "pause_video"),
        ("Hold On", "pause_video"),
        ("resume video", "play_video"),
        ("skip", "next_video"),
        ("stop video", "close_video"),
        ("fetch_video", None),
        (None, None),
    ],
)
def test_canonicalize_tool_name(name, expected):
    assert canonicalize_tool_name(name) == expected


@pytest.mark.parametrize(
    "speech,expected",
    [
        ("Pause the video.", "pause_video"),
        ("could you play the video please", "play_video"),
        ("let's skip to the next one", "next_video"),
        ("close this video", "close_video"),
        ("don't pause", None),
        ("tell me about pricing", None),
    ],
)
def test_map_utterance_to_tool(speech, expected):
    assert map_utterance_to_tool(speech) == expected


def test_command_hidden_in_fetch_title():
    assert command_from_title("'pause please'") == "pause_video"
    assert command_from_title("Product Overview") is None


def test_normalize_event_type():
    assert normalize_event_type({"event_type": "Conversation.Tool-Call"}) == "conversation_tool_call"
    assert normalize_event_type({"data": {"type": "system.shutdown"}}) == "system_shutdown"
    assert normalize_event_type({}) == ""


def test_tool_call_with_json_arguments():
    call = parse_tool_call(
        {
            "event_type": "conversation.tool_call",
            "data": {"name": "fetch_video", "arguments": '{"title": "Product Overview"}'},
        }
    )
    assert call.name == "fetch_video"
    assert call.video_title == "Product Overview"


def test_tool_call_with_loose_arguments():
    call = parse_tool_call(
        {
            "event_type": "conversation.toolcall",
            "properties": {"name": "fetch_video", "arguments": "title: 'Onboarding'"},
        }
    )
    assert call.name == "fetch_video"
    assert call.video_title == "Onboarding"


def test_fetch_video_with_control_title_is_remapped():
    call = parse_tool_call(
        {
            "event_type": "conversation.tool_call",
            "properties": {"name": "fetch_video", "arguments": '"pause"'},
        }
    )
    assert call.name == "pause_video"
    assert call.args == {}


def test_alias_tool_name_is_canonicalised():
    call = parse_tool_call(
        {"event_type": "conversation.tool_call", "properties": {"function": {"name": "skip"}}}
    )
    assert call.name == "next_video"


def test_transcript_without_assistant_tool_calls():
    call = parse_tool_call(
        {
            "event_type": "application.transcription_ready",
            "properties": {"transcript": [{"role": "user", "content": "hi"}]},
        }
    )
    assert call.name is None


def test_transcript_takes_last_tool_call():
    call = parse_tool_call(
        {
            "event_type": "application.transcription_ready",
            "properties": {
                "transcript": [
                    {
                        "role": "assistant",
                        "tool_calls": [{"function": {"name": "fetch_video", "arguments": '{"title": "A"}'}}],
                    },
                    {
                        "role": "assistant",
                        "tool_calls": [{"function": {"name": "show_trial_cta", "arguments": ""}}],
                    },
                ]
            },
        }
    )
    assert call.name == "show_trial_cta"
    assert call.args == {}


def test_utterance_with_inline_call_syntax():
    call = parse_tool_call(
        {
            "event_type": "conversation.utterance",
            "properties": {"speech": 'fetch_video("Product Overview")'},
        },
        text_fallback=True,
    )
    assert call.name == "fetch_video"
    assert call.video_title == "Product Overview"


@pytest.mark.parametrize("event", [None, "x", {"event_type": "conversation.ended"}])
def test_non_tool_events_yield_empty_call(event):
    assert parse_tool_call(event).name is None
