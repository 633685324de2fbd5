"""Taskmarket: marketplace task board for sellers and performers."""
