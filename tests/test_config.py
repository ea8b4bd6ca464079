"""Tests for configuration loading."""

import pytest

from scriptgen.config import GeneratorSettings, SegmenterConfig, load_config


def test_defaults() -> None:
    """Defaults cover the usual login tags and JMeter header values."""
    config = SegmenterConfig()

    assert config.login_tags == ('login', 'log_in', 'log-in')
    assert config.normalize('  Log In ') == 'log_in'
    assert config.normalize(None) == ''
    assert GeneratorSettings().default_port == '80'


def test_load_config(tmp_path) -> None:
    """Sections override the matching dataclass fields."""
    path = tmp_path / 'config.yaml'
    path.write_text(
        'segmenter:\n'
        '  separator: "-"\n'
        '  login_synonyms: [signin]\n'
        'generator:\n'
        '  jmeter: "5.6.2"\n'
        '  think_times:\n'
        '    ThinkTimeMedium: "2000"\n',
        encoding='utf-8',
    )

    segmenter_config, settings = load_config(str(path))

    assert segmenter_config.separator == '-'
    assert segmenter_config.login_synonyms == ('signin',)
    assert settings.jmeter == '5.6.2'
    assert settings.think_times == {'ThinkTimeMedium': '2000'}
    assert settings.version == '1.2'


def test_load_empty_config(tmp_path) -> None:
    """An empty file keeps every default."""
    path = tmp_path / 'config.yaml'
    path.write_text('', encoding='utf-8')

    assert load_config(str(path)) == (SegmenterConfig(), GeneratorSettings())


@pytest.mark.parametrize('content', (
    pytest.param('segmenter:\n  sepparator: "-"\n', id='unknown key'),
    pytest.param('- a\n- b\n', id='not a mapping'),
))
def test_load_invalid_config(tmp_path, content: str) -> None:
    """Unknown keys and non-mapping documents are rejected."""
    path = tmp_path / 'config.yaml'
    path.write_text(content, encoding='utf-8')

    with pytest.raises(ValueError):
        load_config(str(path))
