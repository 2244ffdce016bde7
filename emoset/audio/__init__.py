"""Emoset audio pipeline: decode, canonical WAV, metadata, waveforms, level analysis."""

from .analyzer import (
    AnalysisHandle,
    AnalyzerInitError,
    PlaybackElement,
    RealtimeLevelAnalyzer,
    calculate_average_level,
    get_realtime_analyzer,
)
from .codec import AudioProcessingError, DecodeError, EncodeError, SampleBuffer, decode_audio, encode_wav
from .metadata import AudioMetadata, extract_metadata
from .player import PLAYBACK_SAMPLE_COUNT, WaveformPlayer, WaveformPlayerCache
from .renderer import RasterSurface, RenderMode, playback_progress, render_waveform, seek_time
from .waveform import WaveformEnvelope, WaveformError, compute_envelope, extract_waveform

__all__ = [
    "PLAYBACK_SAMPLE_COUNT",
    "AnalysisHandle",
    "AnalyzerInitError",
    "AudioMetadata",
    "AudioProcessingError",
    "DecodeError",
    "EncodeError",
    "PlaybackElement",
    "RasterSurface",
    "RealtimeLevelAnalyzer",
    "RenderMode",
    "SampleBuffer",
    "WaveformEnvelope",
    "WaveformError",
    "WaveformPlayer",
    "WaveformPlayerCache",
    "calculate_average_level",
    "compute_envelope",
    "decode_audio",
    "encode_wav",
    "extract_metadata",
    "extract_waveform",
    "get_realtime_analyzer",
    "playback_progress",
    "render_waveform",
    "seek_time",
]
