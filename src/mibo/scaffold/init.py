"""Project scaffolding for `mibo init`.

Writes a commented mibo.yaml with every option at its default value,
and keeps the file out of version control since it may hold an API key.
"""

from __future__ import annotations

from pathlib import Path

from rich.console import Console

from mibo.models.config import CONFIG_FILENAME

console = Console()


class ProjectExistsError(Exception):
    """Raised when scaffold_project would overwrite existing files."""

    def __init__(self, conflicting_files: list[str]) -> None:
        self.conflicting_files = conflicting_files
        files_str = ", ".join(conflicting_files)
        super().__init__(f"Files already exist: {files_str}")


def _get_templates_dir() -> Path:
    """Return the path to the templates directory within the package."""
    return Path(__file__).parent / "templates"


def scaffold_project(directory: Path, force: bool = False) -> list[str]:
    """Generate mibo.yaml in the given directory.

    Args:
        directory: Target directory.
        force: If True, overwrite an existing mibo.yaml. If False, raise
            ProjectExistsError when it already exists.

    Returns:
        List of created file paths (relative to directory).

    Raises:
        ProjectExistsError: If mibo.yaml exists and force is False.
    """
    directory = directory.resolve()
    target = directory / CONFIG_FILENAME
    if target.exists() and not force:
        raise ProjectExistsError([CONFIG_FILENAME])

    directory.mkdir(parents=True, exist_ok=True)
    template = _get_templates_dir() / CONFIG_FILENAME
    target.write_text(template.read_text(encoding="utf-8"), encoding="utf-8")
    created = [CONFIG_FILENAME]

    # Handle .gitignore
    gitignore_path = directory / ".gitignore"
    if gitignore_path.exists():
        content = gitignore_path.read_text(encoding="utf-8")
        if CONFIG_FILENAME not in content.splitlines():
            if content and not content.endswith("\n"):
                content += "\n"
            content += CONFIG_FILENAME + "\n"
            gitignore_path.write_text(content, encoding="utf-8")
            created.append(".gitignore (updated)")
    else:
        gitignore_path.write_text(CONFIG_FILENAME + "\n", encoding="utf-8")
        created.append(".gitignore")

    console.print("[green][bold]Configuration initialized![/bold][/green]")
    for path in created:
        console.print(f"  [green]✓[/green] {path}")

    return created
