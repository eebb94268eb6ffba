from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

import pytest

from golink.mapper import BaseModel, Mapper, Model


@dataclass
class NestedStruct:
    name: str = ""
    age: int = 0


@dataclass
class ComplexStruct:
    nested: Optional[NestedStruct] = field(default=None, metadata={"embed": True})
    id: str = ""
    created_at: Optional[datetime] = None


@dataclass
class SimpleStruct:
    title: str = ""
    value: int = 0


@dataclass
class Article(Model):
    base: Optional[BaseModel[str]] = field(default=None, metadata={"embed": True})
    url: str = field(default="", metadata={"column": "original_url"})

    def table_name(self):
        return "articles"

    def column_names(self):
        return ["id", "original_url"]

    def column_values(self):
        return [self.base.id if self.base else None, self.url]


def test_bind_simple():
    target = SimpleStruct()
    Mapper().bind({"title": "Hello", "value": 123}, target)
    assert target.title == "Hello"
    assert target.value == 123


def test_bind_nested_init_nil():
    now = datetime.now()
    row = {"id": "uuid-123", "created_at": now, "name": "GoLink", "age": 1}
    target = ComplexStruct()
    assert target.nested is None

    Mapper().bind(row, target)

    assert target.id == "uuid-123"
    assert target.created_at == now
    assert target.nested is not None
    assert target.nested.name == "GoLink"
    assert target.nested.age == 1


def test_bind_extra_columns():
    target = SimpleStruct()
    Mapper().bind({"title": "Hello", "extra": "ignored"}, target)
    assert target.title == "Hello"
    assert target.value == 0


def test_bind_case_insensitive():
    target = SimpleStruct()
    Mapper().bind({"TiTlE": "Hello"}, target)
    assert target.title == "Hello"


def test_bind_embedded_base_model_and_column_metadata():
    created = datetime(2024, 1, 2, 3, 4, 5)
    target = Article()
    Mapper().bind({"id": "abc", "created_at": created, "original_url": "https://example.com"}, target)
    assert target.base.id == "abc"
    assert target.base.created_at == created
    assert target.url == "https://example.com"
    assert target.column_values() == ["abc", "https://example.com"]


def test_none_values_leave_field_untouched():
    target = SimpleStruct(title="keep")
    Mapper().bind({"title": None}, target)
    assert target.title == "keep"


def test_incompatible_values_are_skipped():
    target = SimpleStruct(title="keep", value=9)
    Mapper().bind({"title": 5, "value": "nope"}, target)
    assert target.title == "keep"
    assert target.value == 9


def test_numeric_values_are_converted():
    target = SimpleStruct()
    Mapper().bind({"value": 4.0}, target)
    assert target.value == 4
    assert isinstance(target.value, int)


def test_mapper_reused_across_binds():
    mapper = Mapper()
    first, second = SimpleStruct(), SimpleStruct()
    mapper.bind({"title": "a"}, first)
    mapper.bind({"title": "b"}, second)
    assert (first.title, second.title) == ("a", "b")


@pytest.mark.parametrize("target", [None, SimpleStruct, object(), {"title": "x"}])
def test_bind_rejects_non_dataclass_instances(target):
    with pytest.raises(TypeError):
        Mapper().bind({"title": "x"}, target)


def test_model_is_abstract():
    with pytest.raises(TypeError):
        Model()