"""Renderer wrappers that copy the elementary streams they see to files."""

from __future__ import annotations

import logging
from typing import Any, BinaryIO, Optional, Tuple

logger = logging.getLogger(__name__)


class RecordingVideoRenderer:
    """Wraps a video renderer and writes every decode unit to a file.

    The recording path is taken from the ``context`` given to ``setup``.
    Decode units are expected to carry their data as an iterable of
    bytes-like chunks in a ``buffers`` attribute.
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self._file: Optional[BinaryIO] = None

    def setup(self, video_format, width, height, redraw_rate, context, flags):
        """Open the recording file named by ``context`` and set up the inner renderer."""
        if context is not None:
            self._file = open(context, "wb")
        else:
            logger.info(
                "Video recording will not be enabled - file path not specified in context"
            )
        return self.inner.setup(video_format, width, height, redraw_rate, None, flags)

    def cleanup(self) -> None:
        """Close the recording file and clean up the inner renderer."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self.inner.cleanup()

    def submit_decode_unit(self, decode_unit):
        """Record the decode unit's data, then pass it to the inner renderer."""
        if self._file is not None:
            for chunk in decode_unit.buffers:
                self._file.write(chunk)
        return self.inner.submit_decode_unit(decode_unit)


class RecordingAudioRenderer:
    """Wraps an audio renderer and writes every sample to a file.

    The recording path is taken from the ``context`` given to ``init``.
    """

    def __init__(self, inner: Any) -> None:
        self.inner = inner
        self._file: Optional[BinaryIO] = None

    def init(self, audio_configuration, opus_config, context, flags):
        """Open the recording file named by ``context`` and initialise the inner renderer."""
        if context is not None:
            self._file = open(context, "wb")
        else:
            logger.info(
                "Audio recording will not be enabled - file path not specified in context"
            )
        return self.inner.init(audio_configuration, opus_config, None, flags)

    def cleanup(self) -> None:
        """Close the recording file and clean up the inner renderer."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self.inner.cleanup()

    def decode_and_play_sample(self, sample) -> None:
        """Record the sample, then pass it to the inner renderer."""
        if self._file is not None:
            self._file.write(sample)
        self.inner.decode_and_play_sample(sample)


def wrap_with_recorders(
    video: Any, audio: Any
) -> Tuple[RecordingVideoRenderer, RecordingAudioRenderer]:
    """Return recording wrappers around the given video and audio renderers."""
    return RecordingVideoRenderer(video), RecordingAudioRenderer(audio)