"""Subprocess execution of buildpack scripts."""

from .runner import ScriptResult, ScriptRunner, assemble_script, script_env

__all__ = ["ScriptResult", "ScriptRunner", "assemble_script", "script_env"]
