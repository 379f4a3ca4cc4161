import pytest

from bookbinder.config import Template


@pytest.fixture
def book_nodes():
    # Part I > (Intro, Methods > Sampling), Part II > Results
    return [
        {'id': 'p1', 'kind': 'part', 'title': 'Part I', 'order': 1},
        {'id': 'intro', 'kind': 'chapter', 'title': 'Intro', 'parent_id': 'p1', 'order': 1,
         'body': '<p>Hello</p>'},
        {'id': 'methods', 'kind': 'chapter', 'title': 'Methods', 'parent_id': 'p1', 'order': 2},
        {'id': 'sampling', 'kind': 'heading', 'title': 'Sampling', 'parent_id': 'methods', 'order': 1},
        {'id': 'p2', 'kind': 'part', 'title': 'Part II', 'order': 2},
        {'id': 'results', 'kind': 'chapter', 'title': 'Results', 'parent_id': 'p2', 'order': 1},
    ]


@pytest.fixture
def plain_template():
    return Template(front_matter_html="", toc_depth=2)
