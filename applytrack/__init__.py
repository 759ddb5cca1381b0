"""Capture job applications on job boards and sync them to a tracker backend."""
