import json
import random

import pytest

from readflow_lib.config import ExtractionOptions
from readflow_lib.sources import MemoryPageSource

from tests.helpers import block, line, page, paragraph, single_column_page, two_column_page


@pytest.fixture
def options():
    return ExtractionOptions()


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def single_column():
    return single_column_page()


@pytest.fixture
def two_columns():
    return two_column_page()


@pytest.fixture
def book_source():
    """Ten single-column pages with a running header and a folio footer."""
    pages = []
    for i in range(10):
        pages.append(
            page(
                block(line("The Tale of Readflow", 250, 20, 110, 9, 9)),
                paragraph(72, 100, 468, 10, offset=i),
                paragraph(72, 240, 468, 10, offset=i + 2),
                block(line(str(i + 1), 300, 760, 10, 9, 9)),
                index=i,
            )
        )
    return MemoryPageSource(pages)


@pytest.fixture
def book_json(tmp_path, book_source):
    """The same book dumped as a JSON page file."""
    path = tmp_path / "book.json"
    path.write_text(json.dumps({"pages": [p.to_dict() for p in book_source.pages]}))
    return str(path)


@pytest.fixture
def blank_json(tmp_path):
    """Five pages with no text layer at all."""
    path = tmp_path / "blank.json"
    path.write_text(json.dumps([page(index=i).to_dict() for i in range(5)]))
    return str(path)
