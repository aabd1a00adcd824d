"""Offline to-do list with a reactive task list state."""
