"""
dexter — unit tests for the command safety gate

File: tests/unit/security/test_safety_gate.py
Last updated: 2026-10-19

Purpose
- Verify that destructive, chained, redirected and device-writing commands are
  rejected while ordinary media tool invocations pass.
"""

from __future__ import annotations

import pytest

from dexter.security.safety_gate import SafetyGate, SafetyRejection


@pytest.fixture()
def gate() -> SafetyGate:
    return SafetyGate()


@pytest.mark.unit
class TestSafetyGate:
    @pytest.mark.parametrize(
        "command",
        [
            "rm -rf /",
            "sudo rm x",
            "dd if=/dev/zero of=/dev/sda",
            "echo a && echo b",
            "mv / /tmp/root",
            "mkfs.ext4 /dev/sdb1",
            "cat a > /dev/sda",
            "ffmpeg -i in.mp4 out.mp4; reboot",
            "ls | sh",
            "echo `whoami`",
            "echo $(id)",
            "ffmpeg -i a.mp4 b.mp4 > log.txt",
            "sort < input.txt",
            "true || false",
            "RM -RF ~",
        ],
    )
    def test_rejects_dangerous_commands(self, gate: SafetyGate, command: str) -> None:
        with pytest.raises(SafetyRejection):
            gate.check(command)
        assert not gate.is_safe(command)

    @pytest.mark.parametrize(
        "command",
        [
            "ls -la",
            "ffmpeg -i clip.mov -c:v libx264 clip.mp4",
            "vips resize photo.jpg small.jpg 0.5",
            "f2 -f jpeg -r jpg",
            "yt-dlp -x --audio-format mp3 https://example.com/watch?v=abc",
        ],
    )
    def test_accepts_ordinary_commands(self, gate: SafetyGate, command: str) -> None:
        gate.check(command)
        assert gate.is_safe(command)

    @pytest.mark.parametrize("command", ["", "   ", "\n\t"])
    def test_empty_command_is_rejected(self, gate: SafetyGate, command: str) -> None:
        with pytest.raises(SafetyRejection, match="empty"):
            gate.check(command)

    def test_rejection_names_the_rule_and_keeps_the_command(self, gate: SafetyGate) -> None:
        with pytest.raises(SafetyRejection) as excinfo:
            gate.check("rm -rf build")
        assert "recursive_delete" in excinfo.value.reason
        assert excinfo.value.command == "rm -rf build"

    def test_quoted_metacharacters_are_still_rejected(self, gate: SafetyGate) -> None:
        assert not gate.is_safe("echo 'a;b'")

    def test_rejection_is_a_value_error(self) -> None:
        assert issubclass(SafetyRejection, ValueError)

    @pytest.mark.parametrize("command", ["dd if=clip.bin OF=/DEV/sda", "tee -a >> /Sys/power/state"])
    def test_system_node_writes_are_matched_regardless_of_case(self, command: str) -> None:
        with pytest.raises(SafetyRejection, match="write to /dev or /sys"):
            SafetyGate(blacklist=()).check(command)
