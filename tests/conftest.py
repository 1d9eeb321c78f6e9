"""
Shared pytest fixtures for calindex tests.

Documents are built in memory; only the vault and CLI tests touch disk.
"""

import textwrap
from pathlib import Path

import pytest

from calindex.config import CalendarSettings, DateProperty, MarkerStyle
from calindex.index import IndexService
from calindex.types import Document


def make_doc(path: str, **metadata) -> Document:
    """Build a Document whose basename is the file name without extension."""
    basename = Path(path).stem
    return Document(path=path, basename=basename, metadata=metadata)


class ListenerRecorder:
    """Collects change notifications."""

    def __init__(self):
        self.calls = []

    def __call__(self, changed):
        self.calls.append(changed)


@pytest.fixture
def settings():
    """Settings with one plain and one recurring custom date property."""
    return CalendarSettings(
        custom_date_properties=[
            DateProperty(name="deadline", color="red", symbol="!"),
            DateProperty(name="birthday", color="pink", symbol="🎂", recurring=True),
        ],
        tag_appearance={"#meeting": MarkerStyle(symbol="👥", color="blue")},
    )


@pytest.fixture
def index(settings):
    return IndexService(settings=settings)


@pytest.fixture
def recorder(index):
    rec = ListenerRecorder()
    index.subscribe(rec)
    return rec


def write_note(root: Path, rel: str, frontmatter: str, body: str = "Body text\n") -> Path:
    """Write a Markdown file with a YAML frontmatter block."""
    path = root / rel
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"---\n{textwrap.dedent(frontmatter).strip()}\n---\n{body}", encoding="utf-8")
    return path


@pytest.fixture
def vault_dir(tmp_path) -> Path:
    """A small vault covering every facet."""
    root = tmp_path / "vault"
    root.mkdir()
    write_note(root, "Meeting.md", """
        date: 2024-05-01
        tags: [meeting]
    """)
    write_note(root, "Trip.md", """
        dateStart: 2024-05-02
        dateEnd: 2024-05-04
        color: green
    """)
    write_note(root, "Gym.md", """
        date: 2024-01-01
        recurrence: FREQ=WEEKLY;BYDAY=MO
    """)
    write_note(root, "tasks/Write report.md", """
        tags: task
        status: open
        scheduled: 2024-05-01
        due: 2024-05-03
    """)
    write_note(root, "2024-05-01.md", "title: daily")
    (root / "Plain.md").write_text("No frontmatter here\n", encoding="utf-8")
    return root
