# buildflow/core/prompts.py
from pathlib import Path
from typing import Any, Dict, List, Optional

import jinja2

from buildfs import FileSnapshot

# prompt templates ship inside the package
TEMPLATES_DIR = Path(__file__).parent.parent / "prompts"
ALIASES = {
    'system': 'system.md.j2',
    'continuation': 'continuation.md.j2',
    'audit': 'audit.md.j2',
    'audit_summary': 'audit_summary.md.j2',
}


def create_jinja_env(templates_dir: Optional[Path] = None) -> jinja2.Environment:
    loader = jinja2.FileSystemLoader(str(templates_dir or TEMPLATES_DIR))
    return jinja2.Environment(
        loader=loader,
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
        undefined=jinja2.StrictUndefined,
    )


def resolve_template_path(template: str) -> str:
    if template in ALIASES:
        return ALIASES[template]
    if not template.endswith('.j2'):
        template += '.md.j2'
    return template


class PromptRenderer:
    """Renders the framing prompts the orchestrator sends on the user's behalf."""

    def __init__(self, templates_dir: Optional[Path] = None):
        self.env = create_jinja_env(templates_dir)

    def render(self, template: str, **context: Any) -> str:
        try:
            tpl = self.env.get_template(resolve_template_path(template))
        except jinja2.TemplateNotFound:
            raise FileNotFoundError(f"Prompt template not found: {template}")
        return tpl.render(**context).strip()

    def system(self, snapshot: FileSnapshot, tools: List[Dict[str, Any]]) -> str:
        return self.render("system", file_tree=file_tree(snapshot), tools=tools)

    def continuation(self, tasks) -> str:
        return self.render("continuation", tasks=tasks)

    def audit(self, snapshot: FileSnapshot) -> str:
        return self.render("audit", file_tree=file_tree(snapshot), files=text_files(snapshot))

    def audit_summary(self, findings: List[Dict[str, Any]], counts: Dict[str, int]) -> str:
        return self.render("audit_summary", findings=findings, counts=counts)


def file_tree(snapshot: FileSnapshot) -> str:
    paths = snapshot.paths(include_directories=True)
    return "\n".join(paths) if paths else "(empty project)"


def text_files(snapshot: FileSnapshot) -> List[Dict[str, str]]:
    """Text files only; binary content would be noise in an audit prompt."""
    return [
        {"path": path, "content": snapshot[path].content}
        for path in snapshot.paths()
        if not snapshot[path].is_binary
    ]
