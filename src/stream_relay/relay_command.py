"""Fixed ffmpeg invocation template for RTMP relays."""

from __future__ import annotations

import shlex

DEFAULT_RELAY_EXECUTABLE = "ffmpeg"
SILENT_AUDIO_SOURCE = "anullsrc=channel_layout=stereo:sample_rate=48000"

# H.264 CBR video and AAC audio tuned for RTMP/FLV ingest servers.
_VIDEO_ARGS: tuple[str, ...] = (
    "-c:v", "libx264",
    "-preset", "veryfast",
    "-tune", "zerolatency",
    "-x264-params", "nal-hrd=cbr",
    "-b:v", "1000k",
    "-maxrate", "1000k",
    "-bufsize", "1000k",
    "-g", "250",
    "-keyint_min", "25",
    "-r", "30",
    "-s", "640x480",
)  # fmt: skip
_AUDIO_ARGS: tuple[str, ...] = (
    "-c:a", "aac",
    "-b:a", "160k",
    "-ar", "48000",
    "-ac", "2",
)  # fmt: skip
_OUTPUT_ARGS: tuple[str, ...] = (
    "-shortest",
    "-f", "flv",
    "-flvflags", "no_duration_filesize",
)  # fmt: skip


def build_relay_args(source: str, destination: str) -> list[str]:
    """Render relay tool arguments (without the executable) for one attempt."""

    return [
        "-re",
        "-i",
        source,
        "-f",
        "lavfi",
        "-i",
        SILENT_AUDIO_SOURCE,
        *_VIDEO_ARGS,
        *_AUDIO_ARGS,
        *_OUTPUT_ARGS,
        destination,
    ]


def render_command_line(executable: str, args: list[str]) -> str:
    """Shell-quoted command line for logs."""

    return shlex.join([executable, *args])
