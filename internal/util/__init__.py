from .cancel import CancelToken
from .env import load_env_file
from .exec import CmdResult, ExecOptions, run_command
from .files import BUILD_DIR_NAMES, WalkOptions, default_walk_options, walk_files
from .id import new_run_id, new_sandbox_id
from .json import error_response, json_response
from .clock import now_ms
from .path import expand_home

__all__ = [
    "CancelToken",
    "load_env_file",
    "CmdResult",
    "ExecOptions",
    "run_command",
    "BUILD_DIR_NAMES",
    "WalkOptions",
    "default_walk_options",
    "walk_files",
    "new_run_id",
    "new_sandbox_id",
    "error_response",
    "json_response",
    "expand_home",
    "now_ms",
]
