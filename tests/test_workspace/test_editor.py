"""Tests for EditorState."""

from workbench_core.workspace.editor import EditorState


class TestSelect:
    """Tests for selecting files."""

    def test_select_opens_and_activates(self) -> None:
        editor = EditorState()
        editor.select("a.js")
        assert editor.open_files == ["a.js"]
        assert editor.active_file == "a.js"

    def test_select_open_file_does_not_duplicate(self) -> None:
        """Selecting an already open tab only changes the active file."""
        editor = EditorState(["a.js", "b.js"], "b.js")
        editor.select("a.js")
        assert editor.open_files == ["a.js", "b.js"]
        assert editor.active_file == "a.js"

    def test_initial_active_is_opened(self) -> None:
        editor = EditorState([], "main.js")
        assert editor.open_files == ["main.js"]


class TestClose:
    """Tests for closing tabs."""

    def test_close_active_promotes_last(self) -> None:
        """Closing the active tab activates the last remaining tab."""
        editor = EditorState(["a", "b", "c"], "b")
        editor.close("b")
        assert editor.open_files == ["a", "c"]
        assert editor.active_file == "c"

    def test_close_inactive_keeps_active(self) -> None:
        editor = EditorState(["a", "b", "c"], "b")
        editor.close("a")
        assert editor.active_file == "b"

    def test_close_last_clears_active(self) -> None:
        editor = EditorState(["a"], "a")
        editor.close("a")
        assert editor.open_files == []
        assert editor.active_file is None

    def test_close_unknown_is_noop(self) -> None:
        editor = EditorState(["a"], "a")
        editor.close("zzz")
        assert editor.open_files == ["a"]


class TestRenameAndForget:
    """Tests for following renames and deletes."""

    def test_rename_keeps_position(self) -> None:
        editor = EditorState(["a", "b", "c"], "b")
        editor.rename("b", "renamed")
        assert editor.open_files == ["a", "renamed", "c"]
        assert editor.active_file == "renamed"

    def test_rename_unrelated(self) -> None:
        editor = EditorState(["a"], "a")
        editor.rename("x", "y")
        assert editor.open_files == ["a"]
        assert editor.active_file == "a"

    def test_forget_directory(self) -> None:
        """Deleting a folder closes every tab under it."""
        editor = EditorState(["src/a.js", "src/lib/b.js", "srcfile", "index.html"], "src/lib/b.js")
        editor.forget("src")
        assert editor.open_files == ["srcfile", "index.html"]
        assert editor.active_file is None

    def test_forget_keeps_unrelated_active(self) -> None:
        editor = EditorState(["a", "b"], "a")
        editor.forget("b")
        assert editor.open_files == ["a"]
        assert editor.active_file == "a"

    def test_reset(self) -> None:
        editor = EditorState(["a"], "a")
        editor.reset(["x", "y"], "y")
        assert editor.open_files == ["x", "y"]
        assert editor.active_file == "y"
