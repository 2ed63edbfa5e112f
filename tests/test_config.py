import pytest
from pydantic import ValidationError

from docmark.config import ConfigError, ParserConfig, load_config


def test_defaults():
    config = ParserConfig()
    assert config.comment_prefix == "docmark-"
    assert config.default_heading_level == 2


def test_load_config_without_file(tmp_path):
    assert load_config() == ParserConfig()
    assert load_config(tmp_path / "missing.yaml") == ParserConfig()


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "docmark.yaml"
    path.write_text("comment_prefix: notes-\ndefault_heading_level: 3\n", encoding="utf-8")
    config = load_config(path)
    assert config.comment_prefix == "notes-"
    assert config.default_heading_level == 3


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_config(path) == ParserConfig()


@pytest.mark.parametrize(
    "content",
    [
        "comment_prefix: [unclosed\n",
        "- just\n- a list\n",
        "default_heading_level: 9\n",
        "comment_prefix: 'has space'\n",
        "unknown_key: 1\n",
    ],
)
def test_invalid_config_raises_config_error(tmp_path, content):
    path = tmp_path / "bad.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


@pytest.mark.parametrize("prefix", ["", "a b", 'x"'])
def test_prefix_validation(prefix):
    with pytest.raises(ValidationError):
        ParserConfig(comment_prefix=prefix)


def test_default_heading_level_used_for_synthetic_heading():
    from docmark.markdown.document import parse_document

    config = ParserConfig(default_heading_level=4)
    document = parse_document('<!-- {"docmark-chapter": {"id": "c1"}} -->\nNo heading.\n', config)
    assert document.chapters[0].heading.level == 4
