"""SafetyGate: classify candidate shell commands before they reach a shell.

Evaluation is a pure function of the command text, the working directory
and the configured rules. Built-in checks run per simple command (the text
split on ``;``, ``&&``, ``||``, ``|`` and newlines); pattern checks run on
the whole text. The most severe finding wins.
"""

from __future__ import annotations

import re
import shlex
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from llamaterminal.logging import get_logger

if TYPE_CHECKING:
    from llamaterminal.config.schema import SafetyConfig

log = get_logger("safety")


class Verdict(Enum):
    """Safety classification of a command."""

    SAFE = "safe"
    NEEDS_CONFIRMATION = "needsConfirmation"
    BLOCKED = "blocked"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    Verdict.SAFE: 0,
    Verdict.NEEDS_CONFIRMATION: 1,
    Verdict.BLOCKED: 2,
}


@dataclass(frozen=True)
class SafetyVerdict:
    """Result of SafetyGate.evaluate()."""

    verdict: Verdict
    reason: str | None = None

    @property
    def is_safe(self) -> bool:
        return self.verdict is Verdict.SAFE

    @property
    def needs_confirmation(self) -> bool:
        return self.verdict is Verdict.NEEDS_CONFIRMATION

    @property
    def is_blocked(self) -> bool:
        return self.verdict is Verdict.BLOCKED


SAFE = SafetyVerdict(Verdict.SAFE)


@dataclass
class CommandBlocked(Exception):
    """A command refused by the SafetyGate.

    Carried on blocked dispatch results so callers can raise or display it.
    """

    command: str
    reason: str

    def __str__(self) -> str:
        return f"Command blocked: {self.command} ({self.reason})"


@dataclass(frozen=True)
class SafetyRule:
    """A regex rule searched in the full command text."""

    pattern: re.Pattern[str]
    verdict: Verdict
    reason: str
    source: str = "config"

    def matches(self, command: str) -> bool:
        return self.pattern.search(command) is not None


# =============================================================================
# Built-in knowledge
# =============================================================================

SYSTEM_DIRS = (
    "/bin",
    "/boot",
    "/dev",
    "/etc",
    "/lib",
    "/lib64",
    "/opt",
    "/proc",
    "/sbin",
    "/sys",
    "/usr",
    "/var",
    "/System",
    "/Library",
    "/Applications",
)

_HOME_TARGETS = frozenset({"~", "$HOME", "${HOME}", "/home", "/root", "/Users"})

_SAFE_DEVICES = re.compile(r"/dev/(?:null|stdout|stderr|tty|fd/\d+)$")

_DEVICE_REDIRECT = re.compile(r"(?<![<>])>{1,2}\|?\s*(/dev/[^\s;&|)]+)")

_FORK_BOMB = re.compile(r":\s*\(\s*\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:")

_INTERPRETERS = r"(?:sh|bash|zsh|ksh|dash|fish|csh|tcsh|python[0-9.]*|perl|ruby|node|php)"

_UNTRUSTED_SOURCES = r"(?:curl|wget|fetch|nc|ncat|base64\s+(?:-d|--decode))"

_PIPE_TO_INTERPRETER = re.compile(
    r"\b"
    + _UNTRUSTED_SOURCES
    + r"\b[^|;&]*\|\s*(?:sudo\s+(?:-\S+\s+)*)?(?:env\s+)?(?:\S*/)?"
    + _INTERPRETERS
    + r"\b"
)

_SUBSTITUTION_TO_INTERPRETER = re.compile(
    r"(?:\b" + _INTERPRETERS + r"|\bsource|(?:^|\s)\.)\s+<\(\s*" + _UNTRUSTED_SOURCES
    + r"|\beval\s+[\"']?(?:\$\(|`)\s*" + _UNTRUSTED_SOURCES
)

_SPLIT = re.compile(r"\|\||&&|[;\n|]")

_WRAPPERS = frozenset({"sudo", "doas", "nohup", "time", "command", "exec", "nice", "env"})

_POWER_COMMANDS = frozenset({"shutdown", "reboot", "halt", "poweroff"})

_ASSIGNMENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=")

_SHELLS = frozenset({"sh", "bash", "zsh", "ksh", "dash", "ash", "mksh", "fish", "csh", "tcsh"})

# chmod -w, chmod -rwx: symbolic modes that look like flags
_DASH_MODE = re.compile(r"^-[rwxXstugo]+$")

_MAX_NESTING = 4


def split_simple_commands(text: str) -> list[str]:
    """Split command text into simple commands.

    Quoting is ignored, which can only over-split.
    """
    return [part.strip() for part in _SPLIT.split(text) if part.strip()]


def tokenize(command: str) -> list[str]:
    """Shell-tokenize a simple command, falling back to whitespace split."""
    try:
        return shlex.split(command, posix=True)
    except ValueError:
        return command.split()


def _unwrap(tokens: list[str]) -> tuple[list[str], bool]:
    """Strip wrappers like sudo/env and leading assignments.

    Returns:
        (remaining tokens, whether sudo/doas was present)
    """
    elevated = False
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in _WRAPPERS:
            elevated = elevated or token in ("sudo", "doas")
            i += 1
            # Skip wrapper flags (sudo -u root, nice -n 10)
            while i < len(tokens) and tokens[i].startswith("-"):
                takes_value = tokens[i] in ("-u", "-g", "-n", "-C")
                i += 2 if takes_value else 1
            continue
        if _ASSIGNMENT.match(token):
            i += 1
            continue
        break
    return tokens[i:], elevated


def _normalize_target(target: str) -> str:
    """Collapse trailing slashes and glob-all suffixes: "/etc/*" -> "/etc"."""
    if target.endswith("/*"):
        target = target[:-2] or "/"
    if len(target) > 1:
        target = target.rstrip("/") or "/"
    return target


def _is_system_path(path: str) -> bool:
    path = _normalize_target(path)
    return path == "/" or any(path == d or path.startswith(d + "/") for d in SYSTEM_DIRS)


def _is_root_or_home(path: str) -> bool:
    """Root, a home directory root, or a top-level system directory."""
    path = _normalize_target(path)
    if path == "/" or path in SYSTEM_DIRS:
        return True
    if path in _HOME_TARGETS:
        return True
    for prefix in ("~/", "$HOME/", "${HOME}/"):
        if path.startswith(prefix) and not path[len(prefix):].strip("/*"):
            return True
    # /home/<user>, /Users/<user>
    parts = [p for p in path.split("/") if p]
    return len(parts) == 2 and parts[0] in ("home", "Users")


def _cwd_is_root_or_home(working_directory: str | None) -> bool:
    if not working_directory:
        return False
    return _is_root_or_home(working_directory)


def _split_flags(
    args: list[str], operand_pattern: re.Pattern[str] | None = None
) -> tuple[list[str], list[str]]:
    """Split args into (flags, operands), honoring ``--``.

    Args matching ``operand_pattern`` are operands even when they start with "-".
    """
    flags: list[str] = []
    operands: list[str] = []
    end_of_flags = False
    for arg in args:
        if not end_of_flags and arg == "--":
            end_of_flags = True
        elif operand_pattern is not None and operand_pattern.match(arg):
            operands.append(arg)
        elif not end_of_flags and arg.startswith("-") and arg != "-":
            flags.append(arg)
        else:
            operands.append(arg)
    return flags, operands


def _has_short_flag(flags: list[str], letters: str) -> bool:
    return any(
        not f.startswith("--") and any(ch in f[1:] for ch in letters) for f in flags
    )


# =============================================================================
# Per-command checks
# =============================================================================

Finding = tuple[Verdict, str]


def _check_rm(args: list[str], working_directory: str | None) -> Finding:
    flags, targets = _split_flags(args)
    recursive = _has_short_flag(flags, "rR") or "--recursive" in flags
    forced = _has_short_flag(flags, "f") or "--force" in flags

    if "--no-preserve-root" in flags:
        return Verdict.BLOCKED, "rm with --no-preserve-root"

    if recursive or forced:
        if any(_is_root_or_home(t) for t in targets):
            return Verdict.BLOCKED, "Recursive or forced deletion of a root, home or system directory"
        relative_all = {".", "./", "*", "./*", ".*"}
        if _cwd_is_root_or_home(working_directory) and any(t in relative_all for t in targets):
            return (
                Verdict.BLOCKED,
                f"Recursive or forced deletion of everything in {working_directory}",
            )
    return Verdict.NEEDS_CONFIRMATION, "Deletes files"


def _check_permissions(name: str, args: list[str]) -> Finding | None:
    flags, operands = _split_flags(args, _DASH_MODE if name == "chmod" else None)
    recursive = _has_short_flag(flags, "R") or "--recursive" in flags
    # First operand is the mode (chmod) or owner (chown/chgrp), unless
    # --reference supplies it
    if any(f.startswith("--reference") for f in flags):
        paths = operands
    else:
        paths = operands[1:]

    for path in paths:
        if not _is_system_path(path):
            continue
        normalized = _normalize_target(path)
        if normalized == "/" or normalized in SYSTEM_DIRS or recursive:
            return Verdict.BLOCKED, f"{name} on system path {normalized}"
        return Verdict.NEEDS_CONFIRMATION, f"{name} on system path {normalized}"

    if recursive:
        return Verdict.NEEDS_CONFIRMATION, f"Recursive {name}"
    return None


def _check_dd(args: list[str]) -> Finding:
    for arg in args:
        if arg.startswith("of=/dev/") and not _SAFE_DEVICES.match(arg[3:]):
            return Verdict.BLOCKED, f"dd writes to device {arg[3:]}"
    return Verdict.NEEDS_CONFIRMATION, "dd copies raw data"


def _check_git(args: list[str]) -> Finding | None:
    if not args:
        return None
    sub, rest = args[0], args[1:]
    if sub == "push" and any(
        a in ("-f", "--force") or a.startswith("--force-with-lease") for a in rest
    ):
        return Verdict.NEEDS_CONFIRMATION, "Force push rewrites remote history"
    if sub == "reset" and "--hard" in rest:
        return Verdict.NEEDS_CONFIRMATION, "git reset --hard discards local changes"
    if sub == "clean" and _has_short_flag([a for a in rest if a.startswith("-")], "f"):
        return Verdict.NEEDS_CONFIRMATION, "git clean deletes untracked files"
    return None


def _check_simple(command: str, working_directory: str | None) -> list[Finding]:
    findings: list[Finding] = []
    tokens, elevated = _unwrap(tokenize(command))
    if elevated:
        findings.append((Verdict.NEEDS_CONFIRMATION, "Runs with elevated privileges"))
    if not tokens:
        return findings

    name = tokens[0].rsplit("/", 1)[-1]
    args = tokens[1:]

    if name == "rm":
        findings.append(_check_rm(args, working_directory))
    elif name in ("chmod", "chown", "chgrp"):
        finding = _check_permissions(name, args)
        if finding:
            findings.append(finding)
    elif name == "dd":
        findings.append(_check_dd(args))
    elif name == "mkfs" or name.startswith("mkfs.") or name == "wipefs":
        findings.append((Verdict.BLOCKED, f"{name} formats a filesystem"))
    elif name in _POWER_COMMANDS or (name == "systemctl" and args[:1] and args[0] in _POWER_COMMANDS):
        findings.append((Verdict.BLOCKED, "Shuts down or restarts the machine"))
    elif name == "tee":
        devices = [a for a in args if a.startswith("/dev/") and not _SAFE_DEVICES.match(a)]
        if devices:
            findings.append((Verdict.BLOCKED, f"Writes to device file {devices[0]}"))
    elif name == "truncate":
        findings.append((Verdict.NEEDS_CONFIRMATION, "Truncates files"))
    elif name == "git":
        finding = _check_git(args)
        if finding:
            findings.append(finding)

    return findings


def _check_whole(text: str) -> list[Finding]:
    findings: list[Finding] = []
    if _FORK_BOMB.search(text):
        findings.append((Verdict.BLOCKED, "Fork bomb"))
    for match in _DEVICE_REDIRECT.finditer(text):
        device = match.group(1)
        if not _SAFE_DEVICES.match(device):
            findings.append((Verdict.BLOCKED, f"Writes to device file {device}"))
            break
    if _PIPE_TO_INTERPRETER.search(text) or _SUBSTITUTION_TO_INTERPRETER.search(text):
        findings.append(
            (Verdict.NEEDS_CONFIRMATION, "Feeds downloaded or decoded input to an interpreter")
        )
    return findings


def substitution_bodies(text: str) -> list[str]:
    """Bodies of ``$(...)``, ``<(...)``, ``>(...)`` and backtick substitutions.

    Arithmetic ``$((...))`` is skipped. An unterminated substitution runs to
    the end of the text.
    """
    bodies: list[str] = []
    i = 0
    while i < len(text):
        if text.startswith(("$(", "<(", ">("), i) and not text.startswith("$((", i):
            depth, j = 1, i + 2
            while j < len(text) and depth:
                if text[j] == "(":
                    depth += 1
                elif text[j] == ")":
                    depth -= 1
                j += 1
            bodies.append(text[i + 2 : j - 1 if depth == 0 else j])
            i = j
        elif text[i] == "`":
            end = text.find("`", i + 1)
            if end == -1:
                end = len(text)
            bodies.append(text[i + 1 : end])
            i = end + 1
        else:
            i += 1
    return [body for body in bodies if body.strip()]


def nested_scripts(text: str) -> list[str]:
    """Scripts the text hands to another shell parser.

    Covers ``sh -c <script>`` (and other shells), ``eval <args>`` and
    command or process substitutions. Over-inclusion only adds checks.
    """
    scripts = substitution_bodies(text)
    tokens = tokenize(text)
    for i, token in enumerate(tokens):
        name = token.rsplit("/", 1)[-1]
        if name == "eval":
            rest = " ".join(tokens[i + 1 :])
            if rest.strip():
                scripts.append(rest)
        elif name in _SHELLS:
            j = i + 1
            while j < len(tokens) and tokens[j][:1] in ("-", "+") and len(tokens[j]) > 1:
                flag = tokens[j]
                j += 1
                if flag in ("-o", "+o", "-O", "+O"):
                    j += 1  # Option name
                elif not flag.startswith("--") and "c" in flag[1:]:
                    if j < len(tokens):
                        scripts.append(tokens[j])
                    break
    return scripts


def _collect_findings(text: str, working_directory: str | None, depth: int = 0) -> list[Finding]:
    findings = _check_whole(text)
    for simple in split_simple_commands(text):
        findings.extend(_check_simple(simple, working_directory))
    if depth < _MAX_NESTING:
        for script in nested_scripts(text):
            findings.extend(_collect_findings(script, working_directory, depth + 1))
    elif nested_scripts(text):
        findings.append((Verdict.NEEDS_CONFIRMATION, "Nested too deeply to check"))
    return findings


def _is_balanced(text: str) -> bool:
    try:
        shlex.split(text, posix=True)
    except ValueError:
        return False
    return True


# =============================================================================
# Gate
# =============================================================================


class SafetyGate:
    """Classifies commands as safe, needing confirmation, or blocked.

    Extra rules come from configuration and are checked after the built-in
    ones; they can raise a verdict but never lower one.
    """

    def __init__(self, rules: list[SafetyRule] | None = None) -> None:
        self._rules = list(rules or [])

    @classmethod
    def from_config(cls, config: SafetyConfig | None) -> SafetyGate:
        """Create a gate from a SafetyConfig. Invalid rules are skipped."""
        rules: list[SafetyRule] = []
        if config is None:
            return cls(rules)

        for rule in config.rules:
            try:
                verdict = Verdict(rule.verdict)
            except ValueError:
                log.warning(
                    "Invalid safety verdict '%s', defaulting to needsConfirmation", rule.verdict
                )
                verdict = Verdict.NEEDS_CONFIRMATION
            try:
                pattern = re.compile(rule.pattern)
            except re.error as e:
                log.warning("Invalid safety rule pattern '%s': %s", rule.pattern, e)
                continue
            rules.append(
                SafetyRule(
                    pattern=pattern,
                    verdict=verdict,
                    reason=rule.reason or f"Matches rule {rule.pattern!r}",
                )
            )
        return cls(rules)

    @property
    def rules(self) -> list[SafetyRule]:
        return list(self._rules)

    def evaluate(self, command: str, working_directory: str | None = None) -> SafetyVerdict:
        """Classify a command.

        Args:
            command: Full command text, possibly several commands.
            working_directory: Directory the command would run in.
        """
        text = command.strip()
        if not text:
            return SAFE

        findings = _collect_findings(text, working_directory)
        if not _is_balanced(text):
            findings.append(
                (Verdict.NEEDS_CONFIRMATION, "Unbalanced quoting; nested commands cannot be checked")
            )
        findings.extend((r.verdict, r.reason) for r in self._rules if r.matches(text))

        verdict, reason = Verdict.SAFE, None
        for found, found_reason in findings:
            if found.severity > verdict.severity:
                verdict, reason = found, found_reason

        if verdict is Verdict.SAFE:
            return SAFE
        log.debug("SafetyGate %s: %r (%s)", verdict.value, text, reason)
        return SafetyVerdict(verdict, reason)
