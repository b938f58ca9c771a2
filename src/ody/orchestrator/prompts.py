"""Prompt templates handed to the external coding agent."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from datetime import date
from enum import Enum

from ody.config import PROGRESS_FILE, OdyConfig, ProjectPaths
from ody.orchestrator.stream import COMPLETION_MARKER

logger = logging.getLogger(__name__)

_PLACEHOLDER_RE = re.compile(r"\{([A-Z][A-Z_]*)\}")


class PromptKind(str, Enum):
    """Available prompt templates."""

    LOOP = "loop"
    SINGLE_TASK = "single_task"
    EDIT_PLAN = "edit_plan"
    PLAN = "plan"


class PromptRenderError(ValueError):
    """Template and substitution map disagree about placeholders."""


LOOP_PROMPT = """
1. Look in the {TASKS_DIR} directory for .code-task.md files. Read the YAML frontmatter of each file and find tasks with "status: pending". Select the single highest-priority pending task (use your judgement; not necessarily the first listed).
2. Update the selected task's YAML frontmatter: set "status: in_progress" and set "started" to today's date (YYYY-MM-DD format).
3. Implement only that task, following its Technical Requirements and Implementation Approach.
4. Use following commands to validate work: {VALIDATION_COMMANDS} (skip if none).
5. Update the task's YAML frontmatter: set "status: completed" and set "completed" to today's date (YYYY-MM-DD format).
6. Append a short progress note to {PROGRESS_FILE} file.
7. If shouldCommit is true, create a git commit for this task.

INPUT
shouldCommit: {SHOULD_COMMIT}

OUTPUT
- If all tasks in {TASKS_DIR} are completed (no pending tasks remain), output MARKER.
- If no {TASKS_DIR} directory or no .code-task.md files can be found, output MARKER.
""".replace("MARKER", COMPLETION_MARKER)

SINGLE_TASK_PROMPT = """
1. Read the task file {TASK_FILE}. Ignore every other .code-task.md file.
2. Update the task's YAML frontmatter: set "status: in_progress" and set "started" to today's date (YYYY-MM-DD format).
3. Implement the task, following its Technical Requirements and Implementation Approach.
4. Use following commands to validate work: {VALIDATION_COMMANDS} (skip if none).
5. Update the task's YAML frontmatter: set "status: completed" and set "completed" to today's date (YYYY-MM-DD format).
6. Append a short progress note to {PROGRESS_FILE} file.
7. If shouldCommit is true, create a git commit for this task.

INPUT
shouldCommit: {SHOULD_COMMIT}

OUTPUT
When the task is completed, output MARKER.
""".replace("MARKER", COMPLETION_MARKER)

EDIT_PLAN_PROMPT = """
OVERVIEW
You are revising an existing code task file. Edit the file in place at {FILE_PATH}.

RULES
- Keep the YAML frontmatter keys and their current values unless the user explicitly asks to change them
- Keep every section of the task file (Description, Background, Technical Requirements, Dependencies, Implementation Approach, Acceptance Criteria, Metadata)
- Improve clarity, fill gaps and resolve contradictions; do not implement the task
- Do not create, rename or delete any other file

CURRENT FILE CONTENT
```markdown
{FILE_CONTENT}
```

OUTPUT
When finished editing the task file, output the text: MARKER.
""".replace("MARKER", COMPLETION_MARKER)

PLAN_PROMPT = """
OVERVIEW
This SOP generates structured code task files from rough descriptions, ideas, or PDD implementation plans. It automatically detects the input type and creates properly formatted code task files following the code task format specification. For PDD plans, it processes implementation steps one at a time to allow for learning and adaptation between steps.

RULES
- Create EXACTLY ONE task as a markdown file
- The file MUST be written to the {TASKS_DIR} directory
- The filename MUST use kebab-case and end with .code-task.md (e.g., {TASKS_DIR}/add-email-validation.code-task.md)
- The filename should be descriptive of the task content
- Take the user provided steps description and create your own detailed implementation approach
- All sections in the template below are REQUIRED; do not skip any

FILE FORMAT
The file MUST follow this exact structure:

```markdown
---
status: pending
created: {CURRENT_DATE}
started: null
completed: null
---
# Task: [Concise Task Name]

## Description
[A clear description of what needs to be implemented and why]

## Background
[Relevant context and background information needed to understand the task]

## Technical Requirements
1. [First requirement]
2. [Second requirement]
3. [Third requirement]

## Dependencies
- [First dependency with details]
- [Second dependency with details]

## Implementation Approach
1. [First implementation step or approach]
2. [Second implementation step or approach]
3. [Third implementation step or approach]

## Acceptance Criteria

1. **[Criterion Name]**
   - Given [precondition]
   - When [action]
   - Then [expected result]

2. **[Another Criterion]**
   - Given [precondition]
   - When [action]
   - Then [expected result]

## Metadata
- **Complexity**: [Low/Medium/High]
- **Labels**: [Comma-separated list of labels]
```

USER TASK DESCRIPTION
{TASK_DESCRIPTION}

OUTPUT
When finished writing the task file, output the text: MARKER.
""".replace("MARKER", COMPLETION_MARKER)

TEMPLATES: dict[PromptKind, str] = {
    PromptKind.LOOP: LOOP_PROMPT,
    PromptKind.SINGLE_TASK: SINGLE_TASK_PROMPT,
    PromptKind.EDIT_PLAN: EDIT_PLAN_PROMPT,
    PromptKind.PLAN: PLAN_PROMPT,
}

REQUIRED_PLACEHOLDERS: dict[PromptKind, tuple[str, ...]] = {
    PromptKind.LOOP: ("TASKS_DIR", "VALIDATION_COMMANDS", "PROGRESS_FILE", "SHOULD_COMMIT"),
    PromptKind.SINGLE_TASK: ("TASK_FILE", "VALIDATION_COMMANDS", "PROGRESS_FILE", "SHOULD_COMMIT"),
    PromptKind.EDIT_PLAN: ("FILE_PATH", "FILE_CONTENT"),
    PromptKind.PLAN: ("TASKS_DIR", "CURRENT_DATE", "TASK_DESCRIPTION"),
}


def template_placeholders(template: str) -> set[str]:
    return set(_PLACEHOLDER_RE.findall(template))


def render_prompt(kind: PromptKind, substitutions: Mapping[str, str]) -> str:
    """Substitute every placeholder of the ``kind`` template in a single pass.

    Values are inserted literally, so placeholder-like text inside a value is
    never expanded. A required placeholder without a value renders as an empty
    string.
    """

    template = TEMPLATES[kind]
    required = REQUIRED_PLACEHOLDERS[kind]

    undeclared = template_placeholders(template) - set(required)
    if undeclared:
        raise PromptRenderError(
            f"{kind.value} template has undeclared placeholders: {sorted(undeclared)}",
        )
    unknown = set(substitutions) - set(required)
    if unknown:
        raise PromptRenderError(
            f"Unknown placeholders for {kind.value} template: {sorted(unknown)}",
        )

    values: dict[str, str] = {}
    for name in required:
        value = substitutions.get(name)
        if value is None:
            logger.debug("No value for {%s} in %s template; using empty string", name, kind.value)
            value = ""
        values[name] = value

    def _replace(match: re.Match[str]) -> str:
        return values[match.group(1)]

    return _PLACEHOLDER_RE.sub(_replace, template).strip()


def label_filter_block(task_files: Sequence[str]) -> str:
    task_list = "\n".join(f"  - {filename}" for filename in task_files)
    return f"\n\nLABEL FILTER\nOnly consider the following task files:\n{task_list}"


def build_run_prompt(
    config: OdyConfig,
    *,
    task_file: str | None = None,
    task_files: Sequence[str] | None = None,
) -> str:
    """Loop prompt, or the single-task prompt when ``task_file`` is given.

    The label-filter block is appended to the loop prompt only, and only for a
    non-empty ``task_files`` list.
    """

    common = {
        "VALIDATION_COMMANDS": ", ".join(config.validator_commands),
        "PROGRESS_FILE": PROGRESS_FILE,
        "SHOULD_COMMIT": "true" if config.should_commit else "false",
    }
    if task_file is not None:
        return render_prompt(PromptKind.SINGLE_TASK, {**common, "TASK_FILE": task_file})

    prompt = render_prompt(
        PromptKind.LOOP,
        {**common, "TASKS_DIR": ProjectPaths.tasks_token(config)},
    )
    if task_files:
        prompt += label_filter_block(task_files)
    return prompt


def build_edit_plan_prompt(*, file_path: str, file_content: str) -> str:
    return render_prompt(
        PromptKind.EDIT_PLAN,
        {"FILE_PATH": file_path, "FILE_CONTENT": file_content},
    )


def build_plan_prompt(config: OdyConfig, *, description: str, today: date | None = None) -> str:
    return render_prompt(
        PromptKind.PLAN,
        {
            "TASKS_DIR": ProjectPaths.tasks_token(config),
            "CURRENT_DATE": (today or date.today()).isoformat(),
            "TASK_DESCRIPTION": description,
        },
    )
