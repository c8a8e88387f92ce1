"""Run reporting."""

from .step_summary import append_step_summary, render_step_summary

__all__ = ["append_step_summary", "render_step_summary"]
