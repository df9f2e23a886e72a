"""Helpers for compiling eBPF objects, choosing targets and naming bindings."""

__all__ = ["compile", "naming", "targets", "tools"]