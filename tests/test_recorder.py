from types import SimpleNamespace

import pytest

from gamestream.recorder import (
    RecordingAudioRenderer,
    RecordingVideoRenderer,
    wrap_with_recorders,
)


class FakeVideo:
    def __init__(self, setup_result=0):
        self.calls = []
        self.setup_result = setup_result

    def setup(self, video_format, width, height, redraw_rate, context, flags):
        self.calls.append(("setup", video_format, width, height, redraw_rate, context, flags))
        return self.setup_result

    def cleanup(self):
        self.calls.append(("cleanup",))

    def submit_decode_unit(self, decode_unit):
        self.calls.append(("submit", decode_unit))
        return 0


class FakeAudio:
    def __init__(self, init_result=0):
        self.calls = []
        self.init_result = init_result

    def init(self, audio_configuration, opus_config, context, flags):
        self.calls.append(("init", audio_configuration, opus_config, context, flags))
        return self.init_result

    def cleanup(self):
        self.calls.append(("cleanup",))

    def decode_and_play_sample(self, sample):
        self.calls.append(("sample", sample))


def test_video_frames_are_written_and_forwarded(tmp_path):
    inner = FakeVideo()
    recorder = RecordingVideoRenderer(inner)
    path = tmp_path / "video.bin"
    assert recorder.setup(1, 1920, 1080, 60, str(path), 0) == 0
    unit = SimpleNamespace(buffers=[b"\x00\x00\x01", b"frame"])
    recorder.submit_decode_unit(unit)
    recorder.submit_decode_unit(SimpleNamespace(buffers=[b"next"]))
    recorder.cleanup()
    assert path.read_bytes() == b"\x00\x00\x01framenext"
    assert inner.calls[0] == ("setup", 1, 1920, 1080, 60, None, 0)
    assert inner.calls[1] == ("submit", unit)
    assert inner.calls[-1] == ("cleanup",)


def test_video_setup_result_is_passed_through(tmp_path):
    recorder = RecordingVideoRenderer(FakeVideo(setup_result=-7))
    assert recorder.setup(1, 640, 480, 30, str(tmp_path / "v.bin"), 0) == -7
    recorder.cleanup()


def test_video_without_path_records_nothing(tmp_path):
    inner = FakeVideo()
    recorder = RecordingVideoRenderer(inner)
    recorder.setup(1, 640, 480, 30, None, 0)
    recorder.submit_decode_unit(SimpleNamespace(buffers=[b"data"]))
    recorder.cleanup()
    assert list(tmp_path.iterdir()) == []
    assert [call[0] for call in inner.calls] == ["setup", "submit", "cleanup"]


def test_video_setup_fails_when_file_cannot_be_opened(tmp_path):
    inner = FakeVideo()
    recorder = RecordingVideoRenderer(inner)
    with pytest.raises(OSError):
        recorder.setup(1, 640, 480, 30, str(tmp_path / "missing" / "v.bin"), 0)
    assert inner.calls == []


def test_audio_samples_are_written_and_forwarded(tmp_path):
    inner = FakeAudio()
    recorder = RecordingAudioRenderer(inner)
    path = tmp_path / "audio.bin"
    config = SimpleNamespace(channel_count=2)
    assert recorder.init(3, config, str(path), 5) == 0
    recorder.decode_and_play_sample(b"abc")
    recorder.decode_and_play_sample(b"def")
    recorder.cleanup()
    assert path.read_bytes() == b"abcdef"
    assert inner.calls == [
        ("init", 3, config, None, 5),
        ("sample", b"abc"),
        ("sample", b"def"),
        ("cleanup",),
    ]


def test_audio_without_path_still_forwards(tmp_path):
    inner = FakeAudio(init_result=4)
    recorder = RecordingAudioRenderer(inner)
    assert recorder.init(3, None, None, 0) == 4
    recorder.decode_and_play_sample(b"xyz")
    recorder.cleanup()
    assert list(tmp_path.iterdir()) == []
    assert inner.calls[1] == ("sample", b"xyz")


def test_audio_init_fails_when_file_cannot_be_opened(tmp_path):
    inner = FakeAudio()
    recorder = RecordingAudioRenderer(inner)
    with pytest.raises(OSError):
        recorder.init(3, None, str(tmp_path / "missing" / "a.bin"), 0)
    assert inner.calls == []


def test_wrap_with_recorders_wraps_both_renderers():
    video, audio = FakeVideo(), FakeAudio()
    wrapped_video, wrapped_audio = wrap_with_recorders(video, audio)
    assert isinstance(wrapped_video, RecordingVideoRenderer)
    assert isinstance(wrapped_audio, RecordingAudioRenderer)
    assert wrapped_video.inner is video
    assert wrapped_audio.inner is audio