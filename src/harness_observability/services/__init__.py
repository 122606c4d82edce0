"""Subsystem services and the manager that coordinates them."""
