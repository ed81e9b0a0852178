import logging
from dataclasses import dataclass
from typing import Iterable, List

from archive import DiscoveredFile
from parsing import end_marker, start_marker

logger = logging.getLogger("StackMorph.prompts")

CONTEXT_DELIMITER = "\n\n---\n\n"

SYSTEM_PROMPT = (
    "You are an expert AI software engineer who migrates front-end web projects "
    "between frameworks. Follow the requested output format exactly and never add "
    "explanations outside of it."
)

PROJECT_PROMPT_TEMPLATE = """
You are an expert AI software engineer. Your task is to perform a complete migration of the provided source code to a new, runnable project using {target_stack}.

You will be given the complete source code for a project, with each file clearly demarcated.

**Your goal is to output a complete, runnable {target_stack} project, not just a 1-to-1 file conversion.**

**MANDATORY INSTRUCTIONS:**

1.  **Convert Logic:** Convert all source files to be idiomatic for {target_stack}, preserving all logic and functionality.
2.  **Create Folder Structure:** Organize all converted files into a standard, professional folder structure for a modern {target_stack} project (e.g., for Vue/React, use a 'src' directory with 'components', 'assets', etc.).
3.  **Generate 'package.json':** Create a new 'package.json' file. It must include:
    * The correct main dependency (e.g., "react", "vue", "svelte").
    * The necessary build tools as 'devDependencies' (e.g., "vite" and its plugins).
    * Script commands for "dev" and "build".
4.  **Generate Build Config:** Create any necessary build configuration files (e.g., 'vite.config.js').
5.  **Generate 'index.html':** Create a new root 'index.html' file to load the new {target_stack} application.
6.  **Generate 'README.md':** Create a new 'README.md' file that includes:
    * A title for the converted project.
    * Simple setup instructions: 'npm install' and 'npm run dev'.
7.  **Handle Imports:** Ensure all file imports/exports are updated to reflect the new file structure and syntax.

**OUTPUT FORMAT:**
- The output must *only* be the raw code for the new files.
- Do not include *any* explanations or introductory text.
- You *must* format your response as a series of files, using the following exact format for *every* file (including 'package.json', 'README.md', etc.):

{example_start}
... (all the content for this file) ...
{example_end}

---
**ORIGINAL PROJECT SOURCE CODE:**
---
{project_code}
---
"""

FILE_PROMPT_TEMPLATE = """
Convert the following file named '{filename}' to {target_stack}.
Preserve all of its logic and functionality and make it idiomatic for {target_stack}.

IMPORTANT: Return ONLY the converted raw code for this single file.
Do not add any commentary, explanations or markdown code fences (no ```).

Original file content:
{content}
"""


@dataclass(frozen=True)
class ProjectContextEntry:
    relative_path: str
    content: str

    def render(self) -> str:
        return f"File: {self.relative_path}\n```\n{self.content}\n```"


def read_source(file: DiscoveredFile):
    """Return the file's text, or None when it is empty or not UTF-8."""
    try:
        content = file.absolute_path.read_text(encoding="utf-8")
    except UnicodeDecodeError:
        logger.warning(f"Skipping non UTF-8 file: {file.relative_path}")
        return None
    if not content.strip():
        logger.debug(f"Skipping empty file: {file.relative_path}")
        return None
    return content


def build_project_context(files: Iterable[DiscoveredFile]) -> List[ProjectContextEntry]:
    entries = []
    for file in files:
        content = read_source(file)
        if content is not None:
            entries.append(ProjectContextEntry(file.relative_path, content))
    return entries


def render_project_code(entries: Iterable[ProjectContextEntry]) -> str:
    return CONTEXT_DELIMITER.join(entry.render() for entry in entries)


def build_project_prompt(target_stack: str, project_code: str) -> str:
    return PROJECT_PROMPT_TEMPLATE.format(
        target_stack=target_stack,
        example_start=start_marker("path/to/new/file.js"),
        example_end=end_marker("path/to/new/file.js"),
        project_code=project_code,
    )


def build_file_prompt(target_stack: str, filename: str, content: str) -> str:
    return FILE_PROMPT_TEMPLATE.format(
        target_stack=target_stack,
        filename=filename,
        content=content,
    )
