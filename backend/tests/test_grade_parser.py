"""
Test: parsing raw grader responses into JSON objects.
"""
import json

import pytest

from app.services.grade_parser import (
    extract_braced_object,
    sanitize,
    strip_fences,
)
from conftest import fenced, make_grade


class TestStripFences:
    def test_json_fence(self):
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_fence_without_language(self):
        assert strip_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_single_line_fence(self):
        assert strip_fences('```json{"a": 1}```') == '{"a": 1}'

    def test_surrounding_whitespace(self):
        assert strip_fences('  \n```json\n{"a": 1}\n```\n  ') == '{"a": 1}'

    def test_unfenced_text_only_trimmed(self):
        assert strip_fences('  {"a": 1}\n') == '{"a": 1}'


class TestExtractBracedObject:
    def test_object_inside_prose(self):
        text = 'Segue a correção: {"total": 840, "x": {"y": 1}} Espero ter ajudado.'
        assert extract_braced_object(text) == '{"total": 840, "x": {"y": 1}}'

    def test_braces_inside_strings_ignored(self):
        text = 'prefix {"comentario": "use } e { com cuidado", "n": 1} suffix'
        assert json.loads(extract_braced_object(text)) == {"comentario": "use } e { com cuidado", "n": 1}

    def test_escaped_quote_inside_string(self):
        text = '{"a": "aspas \\" e } chave"}'
        assert extract_braced_object(text) == text

    def test_no_object(self):
        assert extract_braced_object("nenhum json aqui") is None

    def test_unbalanced(self):
        assert extract_braced_object('{"a": 1') is None


class TestSanitize:
    def test_plain_json(self):
        result = sanitize('{"total": 840}')
        assert result.ok
        assert result.data == {"total": 840}
        assert result.strategy == "strict"

    @pytest.mark.parametrize("body", [
        json.dumps(make_grade()),
        '{"total": 1, "texto": "linha"}',
        'Aqui está: {"total": 2}',
        "sem json",
    ])
    def test_fenced_equals_unfenced(self, body):
        plain = sanitize(body)
        wrapped = sanitize("```json\n" + body + "\n```")
        assert (wrapped.ok, wrapped.data, wrapped.strategy) == (plain.ok, plain.data, plain.strategy)

    def test_raw_newlines_inside_strings(self):
        raw = '{"feedbackGeral": "primeira linha\nsegunda linha", "total": 800}'
        result = sanitize(raw)
        assert result.ok
        assert result.strategy == "without_line_breaks"
        assert result.data["feedbackGeral"] == "primeira linhasegunda linha"

    def test_prose_around_object(self):
        result = sanitize('Claro! Aqui está a correção:\n{"total": 600}\nQualquer dúvida, pergunte.')
        assert result.ok
        assert result.strategy == "braced_span"
        assert result.data == {"total": 600}

    def test_fenced_grade(self):
        grade = make_grade(c1=200, c2=160, c3=160, c4=160, c5=160)
        result = sanitize(fenced(grade))
        assert result.ok
        assert result.data["total"] == 840

    def test_json_array_is_not_an_object(self):
        result = sanitize('[{"total": 400}]')
        # массив не принимается целиком, но объект внутри извлекается
        assert result.ok
        assert result.data == {"total": 400}

    def test_scalar_json_fails(self):
        result = sanitize("42")
        assert not result.ok

    def test_prose_without_json_fails_with_raw(self):
        raw = "Desculpe, não consigo corrigir esta redação."
        result = sanitize(raw)
        assert not result.ok
        assert result.raw == raw
        assert result.data is None
        assert result.error

    def test_empty_and_non_string(self):
        assert not sanitize("").ok
        assert not sanitize("```json\n```").ok
        assert not sanitize(None).ok
        assert not sanitize(b'{"total": 1}').ok
