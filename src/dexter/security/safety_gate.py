"""
dexter — tool-agnostic command safety gate

File: src/dexter/security/safety_gate.py
Last updated: 2026-10-19

Purpose
- Reject generated commands that are empty, match a destructive pattern,
  chain or redirect through shell metacharacters, or write into device or
  sysfs nodes.

Functional requirements
- Runs before every plugin validator and again immediately before execution.
- Deliberately coarse: quoted arguments containing metacharacters are
  rejected too.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final


class SafetyRejection(ValueError):
    """Raised when a command must not be previewed or executed."""

    def __init__(self, reason: str, *, command: str = "") -> None:
        self.reason = reason
        self.command = command
        super().__init__(reason)


@dataclass(frozen=True, slots=True)
class _BlacklistRule:
    name: str
    pattern: re.Pattern[str]


BLACKLIST: Final[tuple[_BlacklistRule, ...]] = (
    _BlacklistRule("recursive_delete", re.compile(r"(?i)^rm\s+")),
    _BlacklistRule("move_root", re.compile(r"(?i)^mv\s+/\s*")),
    _BlacklistRule("raw_disk_write", re.compile(r"(?i)^dd\s+")),
    _BlacklistRule("fork_bomb", re.compile(r"(?i):.*\(\s*\)\s*\{\s*:.*\|.*:.*\}\s*;.*:")),
    _BlacklistRule("sudo_rm", re.compile(r"(?i)^sudo\s+rm")),
    _BlacklistRule("device_redirect", re.compile(r"(?i)>\s*/dev/sd[a-z]")),
    _BlacklistRule("filesystem_format", re.compile(r"(?i)mkfs")),
)

METACHARACTERS: Final[tuple[str, ...]] = ("&&", "||", ";", "|", "`", "$(", ">", "<")

_SYSTEM_NODE_WRITE = re.compile(r"(?:>>?\s*|\bof=)/(?:dev|sys)/", re.IGNORECASE)


class SafetyGate:
    """Stateless command gate; ``check`` raises ``SafetyRejection`` or returns ``None``."""

    def __init__(
        self,
        *,
        blacklist: tuple[_BlacklistRule, ...] = BLACKLIST,
        metacharacters: tuple[str, ...] = METACHARACTERS,
    ) -> None:
        self._blacklist = blacklist
        self._metacharacters = metacharacters

    def check(self, command: str) -> None:
        trimmed = command.strip()
        if not trimmed:
            raise SafetyRejection("Command is empty", command=command)

        for rule in self._blacklist:
            if rule.pattern.search(trimmed):
                raise SafetyRejection(
                    f"Command blocked by safety guard ({rule.name}). "
                    f"Pattern matched: {rule.pattern.pattern}",
                    command=command,
                )

        if _SYSTEM_NODE_WRITE.search(trimmed):
            raise SafetyRejection(
                "Command blocked: potentially destructive write to /dev or /sys",
                command=command,
            )

        for token in self._metacharacters:
            if token in trimmed:
                raise SafetyRejection(
                    f"Command blocked: shell metacharacter {token!r} is not allowed",
                    command=command,
                )

    def is_safe(self, command: str) -> bool:
        try:
            self.check(command)
        except SafetyRejection:
            return False
        return True


__all__ = ["BLACKLIST", "METACHARACTERS", "SafetyGate", "SafetyRejection"]
