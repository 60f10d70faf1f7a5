"""
sciencefair
Science fair competition scoring, arbitration and level-promotion engine.
"""
__version__ = "1.0.0"
