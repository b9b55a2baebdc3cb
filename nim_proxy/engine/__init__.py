"""Reasoning-aware request augmentation and response translation."""

from .completion import translate_completion
from .frames import FrameKind, ProtocolFrame, StreamFrameReader, read_frames
from .merge import build_upstream_request, clone_tree, deep_merge
from .reasoning import REASONING_FIELDS, extract_from_delta, extract_from_message
from .streaming import SessionState, StreamTranslator, translate_stream

__all__ = [
    "FrameKind",
    "ProtocolFrame",
    "REASONING_FIELDS",
    "SessionState",
    "StreamFrameReader",
    "StreamTranslator",
    "build_upstream_request",
    "clone_tree",
    "deep_merge",
    "extract_from_delta",
    "extract_from_message",
    "read_frames",
    "translate_completion",
    "translate_stream",
]
