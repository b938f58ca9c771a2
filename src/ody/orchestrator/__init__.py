"""Agent run orchestration.

The loop is deliberately small: build one prompt, spawn the agent CLI, drain
its output while watching for the completion marker, and repeat until the
marker appears or the iteration budget runs out. Task state lives entirely in
the task files the agent edits; nothing here tracks it between iterations.
"""
