# tests/test_prompts.py
import pytest

from buildfs import FileSnapshot
from buildflow.core.models import Task
from buildflow.core.prompts import file_tree, text_files
from buildflow.core.tools import TOOL_CATALOG


def test_system_prompt_lists_files_and_tools(prompts):
    text = prompts.system(FileSnapshot({"src/App.tsx": "x", "assets/": "__DIR__"}), TOOL_CATALOG)

    assert "src/App.tsx" in text
    assert "assets/" in text
    for tool in TOOL_CATALOG:
        assert f"`{tool['name']}`" in text


def test_empty_project_tree():
    assert file_tree(FileSnapshot()) == "(empty project)"


def test_continuation_lists_each_task(prompts):
    text = prompts.continuation([Task("2", "Add toggle"), Task("3", "Persist choice")])
    assert "- [ ] Task ID 2: Add toggle" in text
    assert "- [ ] Task ID 3: Persist choice" in text


def test_audit_summary_tolerates_partial_findings(prompts):
    text = prompts.audit_summary([{"finding": "No tests"}], {"bugs": 0, "security": 0, "improvements": 0,
                                                             "features": 1})
    assert "[Finding] No tests" in text


def test_text_files_skip_binary():
    snapshot = FileSnapshot({"a.ts": "x", "logo.png": "base64:iVBORw0KGgo="})
    assert text_files(snapshot) == [{"path": "a.ts", "content": "x"}]


def test_unknown_template(prompts):
    with pytest.raises(FileNotFoundError):
        prompts.render("nope")
