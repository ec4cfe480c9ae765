"""Find wall-clock reads that bypass ``core.time_provider``.

Timestamps written to the store and the staleness checks in the realtime
layer must all come from one provider so tests can freeze them. Interval
timing with ``time.perf_counter`` or ``time.monotonic`` is fine.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path


PATTERNS = (
    re.compile(r'\bdatetime\.now\('),
    re.compile(r'\bdatetime\.utcnow\('),
    re.compile(r'\bdatetime\.today\('),
    re.compile(r'\bdate\.today\('),
    re.compile(r'\btime\.time\('),
)
EXEMPT = frozenset({'core/time_provider.py'})


@dataclass(frozen=True)
class ClockViolation:
    path: str
    line_no: int
    line: str

    def __str__(self) -> str:
        return f'{self.path}:{self.line_no}: {self.line}'


def scan_file(path: Path, relative: str) -> list[ClockViolation]:
    found: list[ClockViolation] = []
    for line_no, line in enumerate(path.read_text(encoding='utf-8').splitlines(), start=1):
        code = line.split('#', 1)[0]
        if any(pattern.search(code) for pattern in PATTERNS):
            found.append(ClockViolation(relative, line_no, line.strip()))
    return found


def scan_package(root: Path) -> list[ClockViolation]:
    violations: list[ClockViolation] = []
    for path in sorted(root.rglob('*.py')):
        relative = path.relative_to(root).as_posix()
        if relative in EXEMPT:
            continue
        violations.extend(scan_file(path, relative))
    return violations
