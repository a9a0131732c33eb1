"""Built-in file tools shared by the orchestrator and its workers."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from codescope.core.errors import ToolExecutionError, ToolValidationError
from codescope.tools.executor import ToolSpec

MAX_LISTED_FILES = 500


class FileReadParams(BaseModel):
    file_path: str = Field(..., description="Absolute path to the file to read")


class FileWriteParams(BaseModel):
    file_path: str = Field(..., description="Absolute path where the file should be created")
    content: str = Field(..., description="Content to write to the file")
    create_directories: bool = Field(
        default=False, description="Create missing parent directories"
    )


class ListFilesParams(BaseModel):
    directory: str = Field(..., description="Directory to list")
    pattern: str = Field(default="*", description="Glob pattern, e.g. '**/*.py'")


def read_file(params: FileReadParams) -> Dict[str, Any]:
    path = Path(params.file_path)
    if not path.exists():
        raise ToolExecutionError(f"File not found: {params.file_path}")
    if not path.is_file():
        raise ToolExecutionError(f"Path is not a file: {params.file_path}")
    content = path.read_text(encoding="utf-8", errors="replace")
    return {
        "file_path": str(path),
        "relative_path": path.name,
        "content": content,
        "size": path.stat().st_size,
        "lines": len(content.split("\n")),
    }


def write_file(params: FileWriteParams) -> Dict[str, Any]:
    # New files only; existing sources are changed through patches.
    path = Path(params.file_path)
    if path.exists():
        raise ToolExecutionError(f"File already exists: {params.file_path}")
    if not path.parent.exists():
        if not params.create_directories:
            raise ToolExecutionError(f"Directory does not exist: {path.parent}")
        path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(params.content, encoding="utf-8")
    return {
        "file_path": str(path),
        "size": len(params.content.encode("utf-8")),
        "message": f"Created {path.name}",
    }


def list_files(params: ListFilesParams) -> Dict[str, Any]:
    root = Path(params.directory)
    if not root.is_dir():
        raise ToolExecutionError(f"Not a directory: {params.directory}")
    pattern = Path(params.pattern)
    if pattern.is_absolute() or ".." in pattern.parts:
        raise ToolValidationError(
            "list_files", [f"Pattern must stay inside the directory: {params.pattern}"]
        )
    files: List[str] = []
    truncated = False
    for candidate in sorted(root.glob(params.pattern)):
        if not candidate.is_file():
            continue
        if len(files) >= MAX_LISTED_FILES:
            truncated = True
            break
        files.append(str(candidate.relative_to(root)))
    return {"directory": str(root), "files": files, "count": len(files), "truncated": truncated}


def builtin_tools() -> List[ToolSpec]:
    return [
        ToolSpec(
            name="file_read",
            description=(
                "Reads the contents of a specific file. Use for targeted reads "
                "when you need to inspect code."
            ),
            parameters=FileReadParams,
            handler=read_file,
        ),
        ToolSpec(
            name="file_write",
            description=(
                "Creates a new file. Never use this to rewrite existing files; "
                "only for new utilities, configs, or small additions."
            ),
            parameters=FileWriteParams,
            handler=write_file,
        ),
        ToolSpec(
            name="list_files",
            description="Lists files under a directory matching a glob pattern.",
            parameters=ListFilesParams,
            handler=list_files,
        ),
    ]
