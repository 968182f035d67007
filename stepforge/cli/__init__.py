"""stepforge CLI — Typer-based command-line interface.

Provides the ``stepforge`` command with subcommands for running a
pipeline and inspecting its step graph. All output uses Rich.
"""
