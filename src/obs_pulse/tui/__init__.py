"""Textual dashboard for obs-pulse."""

from obs_pulse.tui.app import ObsPulseApp, run_tui

__all__ = ["ObsPulseApp", "run_tui"]
