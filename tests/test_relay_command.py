from __future__ import annotations

import allure

from stream_relay.relay_command import build_relay_args, render_command_line

pytestmark = [
    allure.epic("Relay Supervisor"),
    allure.feature("Relay Invocation Contract"),
]


def test_build_relay_args_matches_fixed_template() -> None:
    args = build_relay_args(
        "http://camera.local/live.m3u8",
        "rtmp://live.example.com/live/KEY",
    )

    assert args == [
        "-re",
        "-i", "http://camera.local/live.m3u8",
        "-f", "lavfi",
        "-i", "anullsrc=channel_layout=stereo:sample_rate=48000",
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
        "-c:a", "aac",
        "-b:a", "160k",
        "-ar", "48000",
        "-ac", "2",
        "-shortest",
        "-f", "flv",
        "-flvflags", "no_duration_filesize",
        "rtmp://live.example.com/live/KEY",
    ]  # fmt: skip


def test_destination_is_always_the_last_argument() -> None:
    args = build_relay_args("input.mp4", "rtmp://host/app/key")
    assert args[-1] == "rtmp://host/app/key"
    assert args[2] == "input.mp4"


def test_render_command_line_quotes_arguments() -> None:
    line = render_command_line("ffmpeg", ["-i", "my file.mp4"])
    assert line == "ffmpeg -i 'my file.mp4'"
