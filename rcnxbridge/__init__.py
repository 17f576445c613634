"""DUML packet tools, a stick-to-gamepad translator and a controller simulator for DJI RC-Nx remotes."""

__version__ = "0.1.0"
__all__ = ["duml", "simulator", "translator"]