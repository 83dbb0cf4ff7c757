"""The static catalog of agent tools sent to the model."""

from __future__ import annotations

from codemobile.types.tools import ToolDef, ToolParam

READ_FILE = "read_file"
WRITE_FILE = "write_file"
EDIT_FILE = "edit_file"
DELETE_FILE = "delete_file"
LIST_DIRECTORY = "list_directory"
RUN_COMMAND = "run_command"
SEARCH_FILES = "search_files"

_PATH_DESCRIPTION = "Absolute path or path relative to the project root."

READ_FILE_TOOL = ToolDef(
    name=READ_FILE,
    description=(
        "Read the contents of a file at the given path. Use this to examine "
        "existing code, configuration files, or any text file in the project."
    ),
    parameters=(
        ToolParam(name="path", type="string", description=_PATH_DESCRIPTION),
        ToolParam(
            name="start_line",
            type="integer",
            description="Optional 1-based start line to read from. Omit to read from the beginning.",
            required=False,
        ),
        ToolParam(
            name="end_line",
            type="integer",
            description="Optional 1-based end line (inclusive). Omit to read to the end.",
            required=False,
        ),
    ),
)

WRITE_FILE_TOOL = ToolDef(
    name=WRITE_FILE,
    description=(
        "Create a new file or completely overwrite an existing file with the "
        "provided content. Parent directories are created as needed."
    ),
    parameters=(
        ToolParam(name="path", type="string", description=_PATH_DESCRIPTION),
        ToolParam(name="content", type="string", description="The full content to write to the file."),
    ),
)

EDIT_FILE_TOOL = ToolDef(
    name=EDIT_FILE,
    description=(
        "Edit an existing file by replacing a specific string with new content. "
        "The old_string must match exactly (including whitespace and indentation) "
        "and must occur exactly once. Include enough context lines to make the "
        "match unique."
    ),
    parameters=(
        ToolParam(name="path", type="string", description=_PATH_DESCRIPTION),
        ToolParam(
            name="old_string",
            type="string",
            description="The exact text to find and replace. Must match exactly including whitespace.",
        ),
        ToolParam(
            name="new_string",
            type="string",
            description="The replacement text. Use an empty string to delete old_string.",
        ),
    ),
)

DELETE_FILE_TOOL = ToolDef(
    name=DELETE_FILE,
    description="Delete a file or empty directory at the given path.",
    parameters=(ToolParam(name="path", type="string", description=_PATH_DESCRIPTION),),
)

LIST_DIRECTORY_TOOL = ToolDef(
    name=LIST_DIRECTORY,
    description=(
        "List the files and directories in the given directory. Directory "
        "names carry a '/' suffix."
    ),
    parameters=(
        ToolParam(
            name="path",
            type="string",
            description="Absolute path or path relative to the project root. Use '.' for the project root.",
        ),
        ToolParam(
            name="recursive",
            type="boolean",
            description="If true, list recursively as a tree. Default false.",
            required=False,
        ),
    ),
)

RUN_COMMAND_TOOL = ToolDef(
    name=RUN_COMMAND,
    description=(
        "Execute a shell command in the project directory and return its "
        "exit code and combined stdout and stderr. Use for build tools, git, "
        "package managers, or any CLI operation."
    ),
    parameters=(
        ToolParam(name="command", type="string", description="The shell command to execute."),
        ToolParam(
            name="cwd",
            type="string",
            description="Optional working directory. Defaults to the project root.",
            required=False,
        ),
    ),
)

SEARCH_FILES_TOOL = ToolDef(
    name=SEARCH_FILES,
    description=(
        "Search file contents for a case-insensitive regular expression "
        "(or literal text). Returns matching lines as 'path:line: text'."
    ),
    parameters=(
        ToolParam(name="pattern", type="string", description="Text or regex to search for in file contents."),
        ToolParam(
            name="path",
            type="string",
            description="Directory to search in. Defaults to the project root.",
            required=False,
        ),
        ToolParam(
            name="file_pattern",
            type="string",
            description="Optional glob to filter file names (e.g. '*.py').",
            required=False,
        ),
    ),
)

AGENT_TOOLS: tuple[ToolDef, ...] = (
    READ_FILE_TOOL,
    WRITE_FILE_TOOL,
    EDIT_FILE_TOOL,
    DELETE_FILE_TOOL,
    LIST_DIRECTORY_TOOL,
    RUN_COMMAND_TOOL,
    SEARCH_FILES_TOOL,
)
