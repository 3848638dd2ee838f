"""
Unit Tests for Template Operations
==================================
"""

import pytest

from batchqr.core.errors import ElementNotFoundError
from batchqr.core.template.operations import (
    add_element,
    delete_element,
    get_element,
    move_element,
    update_element,
)
from batchqr.models.schemas import ElementKind, Template, TextAlign


def ids(template: Template) -> list:
    return [element.id for element in template.elements]


@pytest.fixture
def three_elements() -> Template:
    template = Template()
    for element_id, kind in (("a", ElementKind.TEXT), ("b", ElementKind.QRCODE), ("c", ElementKind.IMAGE)):
        template = add_element(template, kind, element_id)
    return template


class TestAddElement:
    def test_text_defaults(self):
        element = add_element(Template(), ElementKind.TEXT).elements[0]

        assert (element.x, element.y, element.width, element.height) == (50, 50, 200, 40)
        assert element.content == "Sample text"
        assert element.font_size == 16
        assert element.font_color == "#000000"
        assert element.font_weight == "normal"
        assert element.text_align == TextAlign.LEFT
        assert element.name == "Text 1"
        assert element.column is None

    def test_qrcode_defaults(self):
        element = add_element(Template(), ElementKind.QRCODE).elements[0]
        assert (element.width, element.height) == (150, 150)
        assert element.content == ""
        assert element.name == "QR Code 1"

    def test_image_defaults(self):
        element = add_element(Template(), ElementKind.IMAGE).elements[0]
        assert (element.width, element.height) == (100, 100)
        assert element.image_url == ""
        assert element.name == "Image 1"

    def test_names_count_existing_elements_of_kind(self):
        template = add_element(Template(), ElementKind.TEXT)
        template = add_element(template, ElementKind.QRCODE)
        template = add_element(template, ElementKind.TEXT)

        assert [element.name for element in template.elements] == ["Text 1", "QR Code 1", "Text 2"]

    def test_new_element_is_appended_on_top(self, three_elements):
        template = add_element(three_elements, ElementKind.TEXT, "d")
        assert ids(template) == ["a", "b", "c", "d"]

    def test_input_template_is_not_modified(self):
        original = Template()
        add_element(original, ElementKind.TEXT)
        assert original.is_empty

    def test_generated_ids_are_unique(self):
        template = add_element(Template(), ElementKind.TEXT)
        template = add_element(template, ElementKind.TEXT)
        assert len(set(ids(template))) == 2

    def test_duplicate_explicit_id_rejected(self, three_elements):
        with pytest.raises(ValueError):
            add_element(three_elements, ElementKind.TEXT, "a")


class TestUpdateElement:
    def test_update_fields(self, three_elements):
        template = update_element(three_elements, "a", content="Hello", font_size=24, column="name")
        element = get_element(template, "a")

        assert element.content == "Hello"
        assert element.font_size == 24
        assert element.column == "name"
        assert ids(template) == ["a", "b", "c"]

    def test_none_values_are_ignored(self, three_elements):
        template = update_element(three_elements, "a", content=None, x=10)
        element = get_element(template, "a")
        assert element.content == "Sample text"
        assert element.x == 10

    def test_blank_column_unbinds(self, three_elements):
        template = update_element(three_elements, "b", column="code")
        template = update_element(template, "b", column="")
        assert get_element(template, "b").column is None

    def test_null_column_unbinds(self, three_elements):
        template = update_element(three_elements, "b", column="code")
        template = update_element(template, "b", column=None)
        assert get_element(template, "b").column is None

    def test_geometry_beyond_canvas_limit_rejected(self, three_elements, test_settings):
        limit = test_settings.max_canvas_size
        with pytest.raises(ValueError):
            update_element(three_elements, "b", width=limit + 1)
        with pytest.raises(ValueError):
            update_element(three_elements, "b", x=limit + 1)
        assert get_element(update_element(three_elements, "b", width=limit), "b").width == limit

    def test_numeric_font_weight(self, three_elements):
        template = update_element(three_elements, "a", font_weight=700)
        element = get_element(template, "a")
        assert element.font_weight == "700"
        assert element.is_bold

    @pytest.mark.parametrize("field", ["id", "kind", "type"])
    def test_immutable_fields_rejected(self, three_elements, field):
        with pytest.raises(ValueError):
            update_element(three_elements, "a", **{field: "x"})

    def test_invalid_values_rejected(self, three_elements):
        with pytest.raises(ValueError):
            update_element(three_elements, "a", width=-5)
        with pytest.raises(ValueError):
            update_element(three_elements, "a", font_color="not-a-color")

    def test_unknown_id_raises(self, three_elements):
        with pytest.raises(ElementNotFoundError) as exc_info:
            update_element(three_elements, "missing", x=1)
        assert exc_info.value.element_id == "missing"


class TestDeleteElement:
    def test_delete(self, three_elements):
        assert ids(delete_element(three_elements, "b")) == ["a", "c"]

    def test_unknown_id_raises(self, three_elements):
        with pytest.raises(ElementNotFoundError):
            delete_element(three_elements, "missing")


class TestMoveElement:
    @pytest.mark.parametrize(
        "element_id, index, expected",
        [
            ("a", 2, ["b", "c", "a"]),
            ("c", 0, ["c", "a", "b"]),
            ("a", 1, ["b", "a", "c"]),
            ("b", 1, ["a", "b", "c"]),
            ("a", 99, ["b", "c", "a"]),
            ("c", -3, ["c", "a", "b"]),
        ],
    )
    def test_move_is_a_clamped_splice(self, three_elements, element_id, index, expected):
        assert ids(move_element(three_elements, element_id, index)) == expected

    def test_unknown_id_raises(self, three_elements):
        with pytest.raises(ElementNotFoundError):
            move_element(three_elements, "missing", 0)
