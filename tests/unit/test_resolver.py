"""
Unit tests for ElementResolver.

Scenarios re-render the page with fresh ids between saving and
resolving, the way a framework page does on reload.
"""

import pytest

from relocator.layers.action.resolver import ElementResolver
from relocator.layers.sense.classifier import ElementType
from relocator.layers.sense.scanner import ElementScanner, SavedConfigEntry


def city_form(first_id, second_id, first_label="City", second_label="Billing City",
              first_value="Paris", second_value="Lyon"):
    return f"""
    <form id="address">
      <div class="bh-form-group" id="jqxWidget{first_id}">
        <label class="bh-form-label">{first_label}</label>
        <input name="city" id="jqx-input-{first_id}" value="{first_value}">
      </div>
      <div class="bh-form-group" id="jqxWidget{second_id}">
        <label class="bh-form-label">{second_label}</label>
        <input name="city" id="jqx-input-{second_id}" value="{second_value}">
      </div>
    </form>
    """


def input_entry(**overrides):
    data = dict(
        label=None,
        name=None,
        container_selector="",
        fallback_name=None,
        placeholder=None,
        element_type=ElementType.INPUT,
    )
    data.update(overrides)
    return SavedConfigEntry(**data)


class TestScenarios:
    """End-to-end save on one render, resolve on the next."""

    def test_same_name_fields_resolve_by_container_and_label(self, make_driver):
        driver = make_driver(city_form(100001, 100002))
        descriptors = ElementScanner(driver).scan()
        entries = [SavedConfigEntry.from_descriptor(d) for d in descriptors]

        assert [d.label for d in descriptors] == ["City", "Billing City"]
        assert descriptors[0].container_path != descriptors[1].container_path

        driver.load(city_form(555001, 555002))
        results = ElementResolver(driver).resolve_all(entries)

        assert [r.value for r in results] == ["Paris", "Lyon"]
        assert [r.found_by for r in results] == ["container+label", "container+label"]
        assert results[0].element == driver.css("#jqx-input-555001")[0]
        assert results[1].element == driver.css("#jqx-input-555002")[0]

    def test_swapped_containers_fall_back_to_name_and_label(self, make_driver):
        """A container whose label no longer matches is rejected."""
        driver = make_driver(city_form(100001, 100002))
        entries = [SavedConfigEntry.from_descriptor(d) for d in ElementScanner(driver).scan()]

        driver.load(city_form(7, 8, first_label="Billing City", second_label="City",
                              first_value="Lyon", second_value="Paris"))
        results = ElementResolver(driver).resolve_all(entries)

        assert [r.value for r in results] == ["Paris", "Lyon"]
        assert [r.found_by for r in results] == ["name+label", "name+label"]

    def test_name_fallback_when_container_is_gone(self, make_driver):
        driver = make_driver("""
            <section><p>Newsletter</p><input name="email" value="a@b.c"></section>
        """)
        entry = input_entry(container_selector="div#old-layout div.form-row", fallback_name="email")

        results = ElementResolver(driver).resolve_all([entry])

        assert len(results) == 1
        assert results[0].found_by == "name"
        assert results[0].value == "a@b.c"

    def test_button_prefers_container_match(self, make_driver):
        driver = make_driver("""
            <div class="toolbar" data-name="top-actions"><button id="top">Submit</button></div>
            <div class="footer" data-name="form-actions"><button id="bottom">Submit</button></div>
        """)
        descriptors = ElementScanner(driver).scan()
        saved = SavedConfigEntry.from_descriptor(descriptors[1])

        assert saved.button_text == "Submit"
        assert saved.container_selector == 'div.footer[data-name="form-actions"]'

        match = ElementResolver(driver).resolve_one(saved)

        assert match.element == driver.css("#bottom")[0]
        assert match.found_by == "container"


class TestStrategies:
    """Individual strategies and tags."""

    def test_unlabeled_page_side_is_accepted_unverified(self, make_driver):
        driver = make_driver('<div class="row"><input name="q" value="x"></div>')
        entry = input_entry(label="Search", container_selector="div.row")

        match = ElementResolver(driver).resolve_one(entry)

        assert match.found_by == "container (label unverified)"

    def test_entry_without_label_accepts_container(self, make_driver):
        driver = make_driver('<div class="row"><input name="q"></div>')
        match = ElementResolver(driver).resolve_one(input_entry(container_selector="div.row"))
        assert match.found_by == "container"

    def test_container_skips_invisible_and_button_inputs(self, make_driver):
        driver = make_driver("""
            <div class="row">
              <input type="submit" value="Go">
              <input name="ghost" style="display: none">
              <input name="real" value="visible">
            </div>
        """)
        match = ElementResolver(driver).resolve_one(input_entry(container_selector="div.row"))
        assert match.element == driver.css('[name="real"]')[0]

    def test_duplicate_names_without_label_take_first(self, make_driver):
        driver = make_driver('<input name="n" id="a"><input name="n" id="b">')
        match = ElementResolver(driver).resolve_one(input_entry(fallback_name="n"))

        assert match.found_by == "name (first)"
        assert match.element == driver.css("#a")[0]

    def test_hidden_inputs_never_match_by_name(self, make_driver):
        driver = make_driver('<input type="hidden" name="n"><input name="other" placeholder="Your name">')
        entry = input_entry(fallback_name="n", placeholder="Your name")

        match = ElementResolver(driver).resolve_one(entry)

        assert match.found_by == "placeholder"
        assert match.element == driver.css('[name="other"]')[0]

    def test_button_text_fallback_prefers_label(self, make_driver):
        driver = make_driver("""
            <div class="form-group"><label>Billing</label><button id="b1">Apply</button></div>
            <div class="form-group"><label>Shipping</label><button id="b2">Apply</button></div>
        """)
        entry = SavedConfigEntry(
            label="Shipping",
            name=None,
            container_selector="div#gone",
            fallback_name=None,
            placeholder=None,
            element_type=ElementType.BUTTON,
            button_text="Apply",
        )

        match = ElementResolver(driver).resolve_one(entry)

        assert match.found_by == "button-text+label"
        assert match.element == driver.css("#b2")[0]

    def test_input_button_matches_by_value(self, make_driver):
        driver = make_driver('<form class="f"><input type="submit" value="Send"></form>')
        entry = SavedConfigEntry(
            label=None, name=None, container_selector="form.f", fallback_name=None,
            placeholder=None, element_type=ElementType.BUTTON, button_text="Send",
        )
        match = ElementResolver(driver).resolve_one(entry)
        assert match.found_by == "container"

    def test_display_by_data_name_in_container(self, make_driver):
        driver = make_driver("""
            <div class="bh-form-group"><label class="bh-form-label">Owner</label>
              <span data-name="hint">?</span>
              <span data-name="owner"> Ann Lee </span>
            </div>
        """)
        entry = SavedConfigEntry(
            label="Owner", name=None, container_selector="div.bh-form-group",
            fallback_name=None, placeholder=None,
            element_type=ElementType.TEXT_DISPLAY, data_name="owner",
        )

        results = ElementResolver(driver).resolve_all([entry])

        assert results[0].value == "Ann Lee"
        assert results[0].found_by == "container+label"

    def test_display_document_wide_with_label(self, make_driver):
        driver = make_driver("""
            <div class="form-a"><label>Start</label><p data-name="date">1 May</p></div>
            <div class="form-b"><label>End</label><p data-name="date">9 May</p></div>
        """)
        entry = SavedConfigEntry(
            label="End", name=None, container_selector="table.old",
            fallback_name=None, placeholder=None,
            element_type=ElementType.SELECT_DISPLAY, data_name="date",
        )

        match = ElementResolver(driver).resolve_one(entry)

        assert match.found_by == "data-name+label"
        assert match.element.text == "9 May"


class TestRobustness:
    """resolve_one never raises for bad input."""

    @pytest.mark.parametrize("selector", ["div[[[", ":nth-child(", "#", ""])
    def test_malformed_selector_is_a_miss(self, make_driver, selector):
        driver = make_driver('<input name="email" value="x">')
        entry = input_entry(container_selector=selector, fallback_name="email")

        match = ElementResolver(driver).resolve_one(entry)

        assert match.found_by == "name"

    def test_nothing_matches(self, make_driver):
        driver = make_driver("<p>empty</p>")
        for element_type in ElementType:
            entry = SavedConfigEntry(
                label="X", name="x", container_selector="div[", fallback_name="x",
                placeholder="x", element_type=element_type, data_name="x",
                button_text="x",
            )
            assert ElementResolver(driver).resolve_one(entry) is None

    def test_resolve_all_omits_misses_in_order(self, make_driver):
        driver = make_driver('<input name="a" value="1"><input name="c" value="3">')
        entries = [input_entry(fallback_name=n) for n in ("a", "b", "c")]

        results = ElementResolver(driver).resolve_all(entries)

        assert [r.config_index for r in results] == [0, 2]
        assert [r.value for r in results] == ["1", "3"]
        assert len(results) <= len(entries)

    def test_result_wire_format_drops_element(self, make_driver):
        driver = make_driver('<input name="a" value="1">')
        result = ElementResolver(driver).resolve_all([input_entry(fallback_name="a")])[0]

        assert result.to_dict() == {
            "configIndex": 0,
            "label": None,
            "value": "1",
            "foundBy": "name",
            "elementType": "input",
        }
