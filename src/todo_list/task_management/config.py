"""Configuration constants for task management functionality."""

import os

# Storage Configuration
DEFAULT_DATABASE_PATH = os.path.expanduser("~/.todo-list/tasks.db")
DEFAULT_WAL_MODE = True

# Database Schema Version
# A stored version that differs from this one drops and recreates the tasks table
SCHEMA_VERSION = 1

# Display
DATE_DISPLAY_FORMAT = "%b %d, %Y"  # e.g. "Jan 05, 2026"
