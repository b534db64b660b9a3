import json

import pytest

from texel_plane.base import Texel
from texel_plane.errors import InvalidTree, MalformedDomain, ParseError, UnrecognizedPath
from texel_plane.files import (
    FileCodec,
    domain_to_path,
    generate_file,
    is_l10n_file,
    parse_file,
    path_locale,
    path_to_domain,
)

PATH_DOMAIN = [
    ("en/common.json", "common.json.dir", "en"),
    ("common.en.json", "common.json.name", "en"),
    ("hello/de/common.json", "hello/common.json.dir", "de"),
    ("hello/common.en.yaml", "hello/common.yaml.name", "en"),
    ("a/b/fr/app.yml", "a/b/app.yml.dir", "fr"),
    ("a/b/app.v2.it.json", "a/b/app.v2.json.name", "it"),
]


@pytest.mark.parametrize("path,domain,locale", PATH_DOMAIN)
def test_path_to_domain(path: str, domain: str, locale: str):
    assert path_to_domain(path) == domain
    assert path_locale(path) == locale


@pytest.mark.parametrize("path,domain,locale", PATH_DOMAIN)
def test_domain_to_path(path: str, domain: str, locale: str):
    assert domain_to_path(domain, locale) == path


@pytest.mark.parametrize("domain", [d for _, d, _ in PATH_DOMAIN])
@pytest.mark.parametrize("locale", ["en", "de", "zh"])
def test_domain_round_trip(domain: str, locale: str):
    assert path_to_domain(domain_to_path(domain, locale)) == domain


@pytest.mark.parametrize(
    "path",
    [
        "README.md",
        "en/common.txt",
        "xx/common.json",
        "common.json",
        "en/common.JSON",
    ],
)
def test_unrecognized_paths(path: str):
    assert is_l10n_file(path) is False
    with pytest.raises(UnrecognizedPath):
        path_to_domain(path)


@pytest.mark.parametrize("domain", ["common.json", "common.json.other", "", "en/.json.dir"])
def test_malformed_domain(domain: str):
    with pytest.raises(MalformedDomain):
        domain_to_path(domain, "en")


def test_region_locales_prefer_longest_match():
    codec = FileCodec(locales=["pt", "pt-BR"])

    assert codec.path_to_domain("pt-BR/app.json") == "app.json.dir"
    assert codec.path_locale("pt-BR/app.json") == "pt-BR"
    assert codec.path_locale("app.pt-BR.json") == "pt-BR"
    assert codec.path_locale("app.pt.json") == "pt"
    assert codec.domain_to_path("app.json.name", "pt-BR") == "app.pt-BR.json"


def test_codec_without_locales():
    with pytest.raises(ValueError):
        FileCodec(locales=[])


def test_parse_nested_json():
    texels = parse_file("en/common.json", '{"a": {"b": "hi"}}')
    assert texels == [Texel("common.json.dir", "a.b", "en", "hi")]


FILE_TEXELS = [
    Texel("common.{format}.dir", "bar.baz", "en", "commit"),
    Texel("common.{format}.dir", "foo", "en", "commit"),
]
FORMATS = {
    "json": '{\n  "bar": {\n    "baz": "commit"\n  },\n  "foo": "commit"\n}',
    "yaml": "bar:\n  baz: commit\nfoo: commit\n",
}


def _texels(format: str) -> list[Texel]:
    return [Texel(t.domain.format(format=format), t.key, t.locale, t.value) for t in FILE_TEXELS]


@pytest.mark.parametrize("format", FORMATS)
def test_generate_file(format: str):
    path = f"en/common.{format}"
    assert generate_file(path, _texels(format)) == FORMATS[format]
    assert generate_file(path, list(reversed(_texels(format)))) == FORMATS[format]


@pytest.mark.parametrize("format", FORMATS)
def test_parse_file(format: str):
    assert parse_file(f"en/common.{format}", FORMATS[format]) == _texels(format)


def test_parse_visits_keys_in_sorted_order():
    content = "zeta: z\nalpha:\n  two: 2\n  one: 1\n"
    keys = [t.key for t in parse_file("common.de.yml", content)]
    assert keys == ["alpha.one", "alpha.two", "zeta"]


def test_generate_sorts_keys():
    texels = [
        Texel("common.json.dir", "a.c", "en", "yo"),
        Texel("common.json.dir", "a.b", "en", "hi"),
    ]
    content = generate_file("en/common.json", texels)
    assert content == json.dumps({"a": {"b": "hi", "c": "yo"}}, indent=2)


def test_flatten_nest_round_trip():
    texels = {
        Texel("app.yaml.name", "title", "de", "Titel"),
        Texel("app.yaml.name", "menu.file.open", "de", "Öffnen"),
        Texel("app.yaml.name", "menu.file.close", "de", "Schließen"),
        Texel("app.yaml.name", "menu.help", "de", "Hilfe: 100%"),
    }
    path = "app.de.yaml"
    assert set(parse_file(path, generate_file(path, texels))) == texels


def test_parse_stringifies_scalars():
    texels = parse_file("en/common.json", '{"n": 1, "b": true, "z": null, "f": 1.5}')
    assert [(t.key, t.value) for t in texels] == [
        ("b", "true"),
        ("f", "1.5"),
        ("n", "1"),
        ("z", ""),
    ]


@pytest.mark.parametrize("content", ["", "  \n", "null"])
def test_parse_empty_documents(content: str):
    assert parse_file("en/common.json", content) == []


def test_parse_empty_yaml():
    assert parse_file("en/common.yaml", "# only a comment\n") == []


def test_parse_error_keeps_path_and_content():
    with pytest.raises(ParseError) as info:
        parse_file("en/common.json", "{")

    assert info.value.path == "en/common.json"
    assert info.value.content == "{"
    assert isinstance(info.value.__cause__, json.JSONDecodeError)
    assert "en/common.json" in str(info.value)


def test_parse_error_yaml():
    with pytest.raises(ParseError):
        parse_file("en/common.yaml", "a: [unclosed")


@pytest.mark.parametrize("content", ["[1, 2]", '"just a string"'])
def test_invalid_tree_at_top_level(content: str):
    with pytest.raises(InvalidTree) as info:
        parse_file("en/common.json", content)
    assert info.value.keys == []


def test_invalid_tree_nested_list():
    with pytest.raises(InvalidTree) as info:
        parse_file("en/common.yaml", "menu:\n  items:\n    - a\n    - b\n")

    assert info.value.keys == ["menu", "items"]
    assert isinstance(info.value, ParseError), "InvalidTree is a kind of ParseError"


def test_generate_conflicting_keys():
    texels = [
        Texel("common.json.dir", "a", "en", "leaf"),
        Texel("common.json.dir", "a.b", "en", "nested"),
    ]
    with pytest.raises(ParseError):
        generate_file("en/common.json", texels)


def test_generate_empty_file():
    assert generate_file("en/common.json", []) == "{}"


def test_generate_keeps_unicode():
    texels = [Texel("common.json.dir", "greeting", "ja", "こんにちは")]
    assert "こんにちは" in generate_file("ja/common.json", texels)
    assert "こんにちは" in generate_file("ja/common.yml", texels)
