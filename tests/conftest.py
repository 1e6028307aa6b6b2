"""Shared test fixtures and configuration."""

import json
import sys
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / 'src'))


@pytest.fixture
def anyio_backend():
    """Run async parser tests on asyncio only."""
    return 'asyncio'


def write_jsonl(path: Path, records) -> Path:
    """Write records (dicts or raw strings) as one line each."""
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [record if isinstance(record, str) else json.dumps(record) for record in records]
    path.write_text('\n'.join(lines) + '\n', encoding='utf-8')
    return path


@pytest.fixture
def jsonl_writer():
    """Expose write_jsonl to tests."""
    return write_jsonl
