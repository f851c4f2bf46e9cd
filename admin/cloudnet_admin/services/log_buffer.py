from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class LogEntry:
    sequence: int
    text: str


class _All:
    def matches(self, text):
        return True

    def __repr__(self):
        return 'ALL'


ALL = _All()


@dataclass(frozen=True)
class ContainsLevel:
    level: str

    def matches(self, text):
        return self.level.lower() in text.lower()


def parse_filter(value):
    """'ALL' (or empty) → ALL, anything else → ContainsLevel(value)."""
    value = (value or '').strip()
    if not value or value.upper() == 'ALL':
        return ALL
    return ContainsLevel(value)


class LogBuffer:
    """Ordered console history.

    ``max_lines`` turns the buffer into a ring that drops the oldest entry;
    sequence numbers keep growing either way, so ``total`` is a stable cursor
    for pollers even across evictions and clears.
    """

    def __init__(self, max_lines=None):
        self._entries = deque(maxlen=max_lines or None)
        self._seq = 0

    def __len__(self):
        return len(self._entries)

    @property
    def total(self):
        return self._seq

    def seed(self, lines):
        self._entries.clear()
        for line in lines:
            self.append(line)

    def append(self, line):
        self._entries.append(LogEntry(self._seq, line))
        self._seq += 1

    def view(self, predicate=ALL, since=None):
        return [
            e for e in self._entries
            if (since is None or e.sequence >= since) and predicate.matches(e.text)
        ]

    def clear(self):
        self._entries.clear()

    def export(self):
        return '\n'.join(e.text for e in self._entries).encode('utf-8')
