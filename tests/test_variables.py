"""Tests for {{ }} template variables."""

from src.engine.variables import (
    extract_variables,
    reconcile_variables,
    render_letter,
    substitute_variables,
)


class TestExtractVariables:
    def test_names_are_trimmed_and_unique_in_order(self):
        text = "Dear {{Name}}, account {{ Account Number }}. Regards, {{ Name }}"

        assert extract_variables(text) == ["Name", "Account Number"]

    def test_names_may_contain_punctuation(self):
        assert extract_variables("{{ user-name }} {{ ref.no }}") == ["user-name", "ref.no"]

    def test_case_sensitive(self):
        assert extract_variables("{{ name }} {{ Name }}") == ["name", "Name"]

    def test_empty_text(self):
        assert extract_variables("") == []
        assert extract_variables("No placeholders here") == []


class TestSubstituteVariables:
    def test_replaces_every_occurrence(self):
        text = "{{ Name }} and {{Name}} and {{  Name  }}"

        assert substitute_variables(text, {"Name": "Jane"}) == "Jane and Jane and Jane"

    def test_unknown_names_left_verbatim(self):
        text = "Hi {{ Name }}, ref {{ Ref }}"

        assert substitute_variables(text, {"Name": "Jane"}) == "Hi Jane, ref {{ Ref }}"

    def test_regex_characters_in_names_and_values(self):
        text = "Total {{ a+b (x) }}"

        result = substitute_variables(text, {"a+b (x)": r"$5 \1"})

        assert result == r"Total $5 \1"


class TestReconcileVariables:
    def test_keeps_values_adds_new_drops_removed(self):
        current = {"Name": "Jane", "Old": "gone"}

        result = reconcile_variables(current, "Hi {{ Name }}, {{ Phone }}")

        assert result == {"Name": "Jane", "Phone": ""}

    def test_subject_names_count(self):
        result = reconcile_variables({}, "Body {{ Your Name }}", "Account {{ Account Number }}")

        assert set(result) == {"Your Name", "Account Number"}


class TestRenderLetter:
    def test_reports_blank_values_as_unfilled(self):
        rendered = render_letter(
            "Account {{ Account Number }}",
            "Sincerely,\n{{ Your Name }}",
            {"Your Name": "Jane Doe", "Account Number": "   "},
        )

        assert rendered.body == "Sincerely,\nJane Doe"
        assert rendered.subject == "Account {{ Account Number }}"
        assert rendered.unfilled == ["Account Number"]
        assert rendered.has_unfilled

    def test_fully_filled(self):
        rendered = render_letter("Hi", "{{ A }}", {"A": "x"})

        assert rendered.body == "x"
        assert not rendered.has_unfilled


class TestTemplateProperties:
    SUBJECT = "Account {{ Account Number }}"
    BODY = "Dear {{Creditor}},\n\nRegards,\n{{ Your Name }}\n{{ Your Address }}"

    def test_reconcile_is_stable(self):
        once = reconcile_variables({"Your Name": "Jane", "Stale": "x"}, self.BODY, self.SUBJECT)

        assert reconcile_variables(once, self.BODY, self.SUBJECT) == once

    def test_complete_values_leave_no_placeholders(self):
        names = extract_variables(self.SUBJECT + self.BODY)
        values = {name: f"value for {name}" for name in names}

        for text in (self.SUBJECT, self.BODY):
            remaining = extract_variables(substitute_variables(text, values))
            assert not set(remaining) & set(values)
