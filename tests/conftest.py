"""Tests configurations and fixtures."""

from typing import TYPE_CHECKING

import pytest

from scriptgen.models import CapturedExchange, HttpRequest, HttpResponse

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


def _build_exchange(index: int, comment: str = '', url: str | None = None,
                   method: str = 'GET', body: str | None = None) -> CapturedExchange:
    """Build a captured exchange with a predictable URL."""
    return CapturedExchange(
        index=index,
        comment=comment,
        request=HttpRequest(
            method=method,
            url=url or f'http://shop.example.com/app/page{index}.jsp?id={index}',
            headers={'Accept': 'text/html', 'Host': 'shop.example.com'},
            body=body,
        ),
        response=HttpResponse(status=200, body='<html>ok</html>'),
    )


@pytest.fixture
def make_exchange() -> 'Callable[..., CapturedExchange]':
    """Provide a factory building one captured exchange with a predictable URL."""
    return _build_exchange


@pytest.fixture
def capture() -> 'Callable[[Sequence[str]], list[CapturedExchange]]':
    """Provide a factory turning a list of comments into a capture session.

    Each comment becomes one exchange, indexed by its position.
    """
    def build(comments: 'Sequence[str]') -> list[CapturedExchange]:
        return [_build_exchange(i, comment) for i, comment in enumerate(comments)]

    return build


@pytest.fixture
def csv_source(tmp_path):
    """Provide a factory writing a parameter-source CSV into a sources folder."""
    sources = tmp_path / 'sources'
    sources.mkdir()

    def write(name: str, content: str) -> str:
        path = sources / name
        path.write_text(content, encoding='utf-8')
        return str(path)

    return write
