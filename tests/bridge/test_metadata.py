"""Tests for job descriptions taken from script scope."""

from jobbridge.bridge.metadata import describe


class TestDescribe:
    """Tests for describe()."""

    def test_pretty_name_function(self):
        """A pretty_name() returning str wins."""
        scope = {"pretty_name": lambda: "Unpacking image", "__doc__": "Docstring"}

        assert describe(scope) == "Unpacking image"

    def test_pretty_name_not_trimmed(self):
        """pretty_name() output is used as-is."""
        scope = {"pretty_name": lambda: "  Spaced  "}

        assert describe(scope) == "  Spaced  "

    def test_pretty_name_wrong_type_falls_back_to_doc(self):
        """A non-string pretty_name() result is ignored."""
        scope = {"pretty_name": lambda: 42, "__doc__": "Configure bootloader\nMore text"}

        assert describe(scope) == "Configure bootloader"

    def test_pretty_name_raising_falls_back_to_doc(self):
        """A raising pretty_name() is ignored."""

        def pretty_name():
            raise RuntimeError("no translations")

        scope = {"pretty_name": pretty_name, "__doc__": "Fallback doc"}

        assert describe(scope) == "Fallback doc"

    def test_pretty_name_not_callable(self):
        """A non-callable pretty_name is skipped."""
        scope = {"pretty_name": "not a function", "__doc__": "Doc line"}

        assert describe(scope) == "Doc line"

    def test_doc_first_line_trimmed(self):
        """Docstring is trimmed and cut at the first newline."""
        scope = {"__doc__": "\n    Set up the locale.\n\n    Longer explanation.\n"}

        assert describe(scope) == "Set up the locale."

    def test_single_line_doc(self):
        """A one-line docstring is used whole."""
        scope = {"__doc__": "Create users"}

        assert describe(scope) == "Create users"

    def test_non_string_doc(self):
        """A non-string __doc__ gives empty."""
        assert describe({"__doc__": None}) == ""
        assert describe({"__doc__": 12}) == ""

    def test_empty_scope(self):
        """Nothing to describe gives empty."""
        assert describe({}) == ""

    def test_idempotent(self):
        """Describing the same scope twice gives the same answer."""
        scope = {"pretty_name": lambda: "Same", "__doc__": "Other"}

        assert describe(scope) == describe(scope)
        scope = {"__doc__": "Only doc\nsecond"}
        assert describe(scope) == describe(scope) == "Only doc"
