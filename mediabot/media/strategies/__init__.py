"""Workflow strategies used by `mediabot.media.request_handler`."""
